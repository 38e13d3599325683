import uuid
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Optional, Literal, Union
from pydantic import BaseModel, Field, field_validator

MAX_YEARS = 4
MAX_SUBJECTS_PER_SEMESTER = 10
SEMESTERS_PER_YEAR = 2
DEFAULT_CREDITS = 3


class GradingSystem(str, Enum):
    TEN_POINT = "ten_point"
    FOUR_POINT = "four_point"
    VTU = "vtu"


class PercentageFormula(str, Enum):
    OFFICIAL = "official"
    DIRECT_MULTIPLY = "direct-multiply"
    OFFSET_10PT = "offset-10pt"
    OFFSET_ALT = "offset-alt"
    SCALE_9_5 = "scale-9.5"
    SCALE_10_OFFSET_7_5 = "scale-10-offset-7.5"


GRADE_POINTS = MappingProxyType({
    GradingSystem.TEN_POINT: MappingProxyType({
        'O': 10.0,
        'A+': 9.0,
        'A': 8.0,
        'B+': 7.0,
        'B': 6.0,
        'C': 5.0,
        'P': 4.0,
        'F': 0.0,
        'AB': 0.0,  # absent
    }),
    GradingSystem.FOUR_POINT: MappingProxyType({
        'A': 4.0,
        'A-': 3.7,
        'B+': 3.3,
        'B': 3.0,
        'B-': 2.7,
        'C+': 2.3,
        'C': 2.0,
        'C-': 1.7,
        'D+': 1.3,
        'D': 1.0,
        'F': 0.0,
    }),
    # VTU style scale; P is a pass in audit/mandatory courses
    GradingSystem.VTU: MappingProxyType({
        'S': 10.0,
        'A': 9.0,
        'B': 8.0,
        'C': 7.0,
        'D': 6.0,
        'E': 5.0,
        'P': 5.0,
        'F': 0.0,
    }),
})


def new_id() -> str:
    return uuid.uuid4().hex


# ---------- Academic record ----------

class Subject(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str = ""
    credits: int = Field(DEFAULT_CREDITS, ge=0)
    grade: Optional[str] = None  # empty or None means not yet graded
    grade_points: float = 0.0  # display cache, refreshed on every calculation

    @field_validator('grade')
    @classmethod
    def normalize_grade(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().upper()
        return v or None


class Semester(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str = ""
    subjects: List[Subject] = Field(default_factory=list, max_length=MAX_SUBJECTS_PER_SEMESTER)
    sgpa: float = 0.0


class Year(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str = ""
    # Empty until add_semester_pair fills it
    semesters: List[Semester] = Field(default_factory=list, max_length=SEMESTERS_PER_YEAR)


class AcademicRecord(BaseModel):
    years: List[Year] = Field(default_factory=list, max_length=MAX_YEARS)


class CalculatorConfig(BaseModel):
    grading_system: GradingSystem = GradingSystem.TEN_POINT
    percentage_formula: PercentageFormula = PercentageFormula.OFFICIAL


# ---------- Static lookup data ----------

class CourseResource(BaseModel):
    name: str
    path: str


class CourseRecord(BaseModel):
    name: str
    description: str
    topics: List[str]
    resources: List[CourseResource]


class SemesterResourceBundle(BaseModel):
    courses: List[str]
    path: str


class TopicInfo(BaseModel):
    languages: List[str] = []
    branches: List[str] = []
    concepts: List[str] = []


class IntentResult(BaseModel):
    course_code: Optional[str] = None
    is_navigation: bool = False
    semester: Optional[str] = None
    semester_resources: Optional[SemesterResourceBundle] = None
    topic: Optional[str] = None


# ---------- Requests ----------

class CalculateRequest(BaseModel):
    record: AcademicRecord
    config: CalculatorConfig = CalculatorConfig()


class RecordRequest(BaseModel):
    record: AcademicRecord


class SubjectLocator(BaseModel):
    record: AcademicRecord
    year_id: str
    semester_id: str


class SubjectUpdateRequest(SubjectLocator):
    subject_id: str
    field: Literal['name', 'credits', 'grade']
    value: Optional[Union[int, str]] = None


class SubjectRemoveRequest(SubjectLocator):
    subject_id: str


class IntentRequest(BaseModel):
    text: str


class ChatMessage(BaseModel):
    role: Literal['system', 'user', 'assistant']
    content: str


class ChatRequest(BaseModel):
    messages: List[ChatMessage]


# ---------- Responses ----------

class SemesterResult(BaseModel):
    year_id: str
    year_name: str
    semester_id: str
    semester_name: str
    sgpa: float
    credits: int


class CGPAResult(BaseModel):
    cgpa: float
    total_credits: int


class CalculationResponse(BaseModel):
    cgpa: float
    total_credits: int
    percentage: float
    grading_system: GradingSystem
    percentage_formula: PercentageFormula
    semesters: List[SemesterResult]
    record: AcademicRecord


class GradingSystemsResponse(BaseModel):
    grading_systems: Dict[str, Dict[str, float]]
    percentage_formulas: List[str]


class ChatResponse(BaseModel):
    message: ChatMessage
    intent: IntentResult
