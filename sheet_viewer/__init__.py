"""Google Sheets viewer backend."""
