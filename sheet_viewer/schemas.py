from pydantic import BaseModel, Field
from typing import Dict, List, Literal

ColumnType = Literal["string", "date", "number", "boolean", "other"]

ALL = "all"


class SheetReference(BaseModel):
    sheet_id: str = Field(..., min_length=1, pattern=r"^[A-Za-z0-9_-]+$")
    gid: str = ""
    sheet_name: str = ""
    display_url: str = ""


class Column(BaseModel):
    key: str
    label: str
    type: ColumnType = "string"


class Table(BaseModel):
    columns: List[Column] = []
    rows: List[Dict[str, str]] = []


class FilterColumnMap(BaseModel):
    system: str = ""
    milestone: str = ""
    developer: str = ""
    manager: str = ""

    def search_keys(self) -> List[str]:
        """Keys of the role-mapped columns, in role order, without blanks."""
        keys = [self.system, self.milestone, self.developer, self.manager]
        return [key for key in keys if key]


class FilterState(BaseModel):
    system: str = ALL
    milestone: str = ALL
    search: str = ""


class FilterOptions(BaseModel):
    system: List[str] = []
    milestone: List[str] = []


class Summary(BaseModel):
    total_projects: int = 0
    total_milestones: int = 0


class Feedback(BaseModel):
    message: str = ""
    is_error: bool = False


class SheetView(BaseModel):
    source_url: str = ""
    columns: List[Column] = []
    rows: List[Dict[str, str]] = []
    filter_columns: FilterColumnMap = FilterColumnMap()
    filters: FilterState = FilterState()
    options: FilterOptions = FilterOptions()
    summary: Summary = Summary()
    feedback: Feedback = Feedback()


class LoadSheetRequest(BaseModel):
    link: str


class SavedLinkResponse(BaseModel):
    link: str = ""
