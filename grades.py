"""
Grade aggregation: per-semester SGPA, cumulative CGPA and the CGPA to
percentage conversions, plus the record mutations used by the calculator UI.

Every calculation is a pure function of the record passed in; nothing is
memoized between calls.
"""
import logging
from typing import List, Optional, Tuple, Union

from schemas import (
    AcademicRecord,
    CalculationResponse,
    CalculatorConfig,
    CGPAResult,
    GradingSystem,
    PercentageFormula,
    Semester,
    SemesterResult,
    Subject,
    Year,
    GRADE_POINTS,
    MAX_SUBJECTS_PER_SEMESTER,
    MAX_YEARS,
    SEMESTERS_PER_YEAR,
)

logger = logging.getLogger(__name__)


# ---------- Core GPA Logic ----------

def grade_to_points(grade: Optional[str], grading_system: GradingSystem) -> float:
    # Unknown or missing tokens count as "not yet graded"
    if not grade:
        return 0.0
    return GRADE_POINTS[grading_system].get(grade.strip().upper(), 0.0)


def _is_counted(subject: Subject) -> bool:
    return bool(subject.grade) and subject.credits > 0


def compute_sgpa(semester: Semester, grading_system: GradingSystem) -> float:
    weighted_sum = 0.0
    credit_total = 0
    for subject in semester.subjects:
        if not _is_counted(subject):
            continue
        weighted_sum += grade_to_points(subject.grade, grading_system) * subject.credits
        credit_total += subject.credits
    return weighted_sum / credit_total if credit_total > 0 else 0.0


def compute_cgpa(record: AcademicRecord, grading_system: GradingSystem) -> CGPAResult:
    """
    CGPA is the unweighted mean of the SGPAs of every semester that holds at
    least one subject, not a credit-weighted average.
    """
    sgpa_sum = 0.0
    semester_count = 0
    total_credits = 0
    for year in record.years:
        for semester in year.semesters:
            if not semester.subjects:
                continue
            sgpa_sum += compute_sgpa(semester, grading_system)
            semester_count += 1
            total_credits += sum(s.credits for s in semester.subjects if _is_counted(s))
    cgpa = sgpa_sum / semester_count if semester_count > 0 else 0.0
    return CGPAResult(cgpa=cgpa, total_credits=total_credits)


def cgpa_to_percentage(cgpa: float, formula: PercentageFormula) -> float:
    # No grades entered: an offset formula would otherwise report a negative baseline
    if cgpa == 0:
        return 0.0
    formula = PercentageFormula(formula)
    if formula is PercentageFormula.OFFICIAL:
        percentage = (cgpa / 10) * 100
    elif formula is PercentageFormula.DIRECT_MULTIPLY:
        percentage = cgpa * 10
    elif formula is PercentageFormula.OFFSET_10PT:
        percentage = (cgpa - 0.75) * 10
    elif formula is PercentageFormula.OFFSET_ALT:
        percentage = (cgpa - 0.5) * 10
    elif formula is PercentageFormula.SCALE_9_5:
        percentage = cgpa * 9.5
    elif formula is PercentageFormula.SCALE_10_OFFSET_7_5:
        percentage = (cgpa * 10) - 7.5
    else:
        raise ValueError(f"Unhandled percentage formula: {formula}")
    # Values above 100 are reported as-is
    return max(0.0, percentage)


def calculate(record: AcademicRecord, config: CalculatorConfig) -> CalculationResponse:
    system = config.grading_system
    semesters: List[SemesterResult] = []
    for year in record.years:
        for semester in year.semesters:
            for subject in semester.subjects:
                subject.grade_points = grade_to_points(subject.grade, system) * subject.credits
            semester.sgpa = compute_sgpa(semester, system)
            semesters.append(SemesterResult(
                year_id=year.id,
                year_name=year.name,
                semester_id=semester.id,
                semester_name=semester.name,
                sgpa=round(semester.sgpa, 2),
                credits=sum(s.credits for s in semester.subjects if _is_counted(s)),
            ))

    cg = compute_cgpa(record, system)
    percentage = cgpa_to_percentage(cg.cgpa, config.percentage_formula)
    return CalculationResponse(
        cgpa=round(cg.cgpa, 2),
        total_credits=cg.total_credits,
        percentage=round(percentage, 2),
        grading_system=system,
        percentage_formula=config.percentage_formula,
        semesters=semesters,
        record=record,
    )


# ---------- Record mutations ----------
# Each mutation returns False and leaves the record untouched when rejected.

def add_semester_pair(year: Year) -> bool:
    if year.semesters:
        return False
    offset = _year_number(year.name)
    for i in range(1, SEMESTERS_PER_YEAR + 1):
        number = (offset - 1) * SEMESTERS_PER_YEAR + i if offset else i
        year.semesters.append(Semester(name=f"Semester {number}"))
    return True


def _year_number(name: str) -> int:
    tail = name.rsplit(" ", 1)[-1]
    return int(tail) if tail.isdigit() else 0


def add_year(record: AcademicRecord) -> bool:
    if len(record.years) >= MAX_YEARS:
        logger.info("Rejected add_year: record already has %d years", len(record.years))
        return False
    year = Year(name=f"Year {len(record.years) + 1}")
    add_semester_pair(year)
    record.years.append(year)
    return True


def new_record() -> AcademicRecord:
    record = AcademicRecord()
    add_year(record)
    return record


def find_semester(record: AcademicRecord, year_id: str, semester_id: str) -> Optional[Semester]:
    for year in record.years:
        if year.id != year_id:
            continue
        for semester in year.semesters:
            if semester.id == semester_id:
                return semester
    return None


def _find_subject(semester: Semester, subject_id: str) -> Tuple[int, Optional[Subject]]:
    for index, subject in enumerate(semester.subjects):
        if subject.id == subject_id:
            return index, subject
    return -1, None


def add_subject(record: AcademicRecord, year_id: str, semester_id: str) -> bool:
    semester = find_semester(record, year_id, semester_id)
    if semester is None:
        return False
    if len(semester.subjects) >= MAX_SUBJECTS_PER_SEMESTER:
        logger.info("Rejected add_subject: semester %s is full", semester_id)
        return False
    semester.subjects.append(Subject())
    return True


def update_subject_field(
    record: AcademicRecord,
    year_id: str,
    semester_id: str,
    subject_id: str,
    field: str,
    value: Optional[Union[int, str]],
) -> bool:
    semester = find_semester(record, year_id, semester_id)
    if semester is None:
        return False
    _, subject = _find_subject(semester, subject_id)
    if subject is None:
        return False

    if field == 'name':
        subject.name = "" if value is None else str(value)
    elif field == 'credits':
        try:
            credits = int(value)
        except (TypeError, ValueError):
            return False
        if credits < 0:
            return False
        subject.credits = credits
    elif field == 'grade':
        token = str(value).strip().upper() if value is not None else ""
        subject.grade = token or None
    else:
        return False
    return True


def remove_subject(record: AcademicRecord, year_id: str, semester_id: str, subject_id: str) -> bool:
    semester = find_semester(record, year_id, semester_id)
    if semester is None:
        return False
    index, _ = _find_subject(semester, subject_id)
    if index < 0:
        return False
    del semester.subjects[index]
    return True
