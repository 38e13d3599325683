"""
Course lookups and the keyword based intent helpers used by the chat proxy.

All functions are plain text-in, struct-out lookups over static tables and
return None / False on a miss.
"""
import re
from types import MappingProxyType
from typing import Optional, Union

from schemas import CourseRecord, IntentResult, SemesterResourceBundle, TopicInfo

COURSE_DATABASE = MappingProxyType({
    'CHB101': CourseRecord(
        name='Chemistry Basics 101',
        description='Introduction to basic chemistry concepts including atoms, molecules, and chemical reactions.',
        topics=[
            'Atomic Structure',
            'Periodic Table',
            'Chemical Bonding',
            'Stoichiometry',
            'Nanomaterials',
            'Chemical Reactions',
        ],
        resources=[
            {'name': 'Lecture Notes', 'path': '/resources/chb101/lectures'},
            {'name': 'Lab Manuals', 'path': '/resources/chb101/labs'},
            {'name': 'Practice Problems', 'path': '/resources/chb101/practice'},
        ],
    ),
    'ITC101': CourseRecord(
        name='Introduction to Computing 101',
        description='Fundamentals of computer science and programming.',
        topics=[
            'Computer Architecture',
            'Binary and Hexadecimal',
            'Algorithms',
            'Programming Basics',
            'Data Structures',
            'Problem Solving',
        ],
        resources=[
            {'name': 'Lecture Notes', 'path': '/resources/itc101/lectures'},
            {'name': 'Programming Exercises', 'path': '/resources/itc101/exercises'},
            {'name': 'Reference Materials', 'path': '/resources/itc101/references'},
        ],
    ),
    'CSE201': CourseRecord(
        name='Computer Science Engineering 201',
        description='Advanced topics in computer science and engineering.',
        topics=[
            'Object-Oriented Programming',
            'Database Systems',
            'Web Development',
            'Software Engineering',
            'Network Fundamentals',
            'IoT Basics',
        ],
        resources=[
            {'name': 'Lecture Notes', 'path': '/resources/cse201/lectures'},
            {'name': 'Project Materials', 'path': '/resources/cse201/projects'},
            {'name': 'Reference Materials', 'path': '/resources/cse201/references'},
        ],
    ),
})

SEMESTER_RESOURCES = MappingProxyType({
    '1': SemesterResourceBundle(
        courses=['CHB101', 'ITC101', 'MTH101', 'PHY101', 'ENG101'],
        path='/resources/semester1',
    ),
    '2': SemesterResourceBundle(
        courses=['CHB102', 'ITC102', 'MTH102', 'PHY102', 'ENG102'],
        path='/resources/semester2',
    ),
    '3': SemesterResourceBundle(
        courses=['CSE201', 'CSE202', 'MTH201', 'ECE201', 'HUM201'],
        path='/resources/semester3',
    ),
    '4': SemesterResourceBundle(
        courses=['CSE203', 'CSE204', 'MTH202', 'ECE202', 'HUM202'],
        path='/resources/semester4',
    ),
})

EDUCATIONAL_TOPICS = MappingProxyType({
    'programming': TopicInfo(
        languages=['Python', 'Java', 'JavaScript', 'C++', 'C#'],
        concepts=['Variables', 'Control Flow', 'Functions', 'Classes', 'Data Structures', 'Algorithms'],
    ),
    'mathematics': TopicInfo(
        branches=['Calculus', 'Linear Algebra', 'Discrete Mathematics', 'Statistics', 'Probability'],
        concepts=['Derivatives', 'Integrals', 'Matrices', 'Vectors', 'Combinatorics'],
    ),
    'physics': TopicInfo(
        branches=['Mechanics', 'Electromagnetism', 'Thermodynamics', 'Quantum Physics', 'Relativity'],
        concepts=['Forces', 'Energy', 'Fields', 'Waves', 'Particles'],
    ),
    'chemistry': TopicInfo(
        branches=['Organic', 'Inorganic', 'Physical', 'Analytical', 'Biochemistry'],
        concepts=['Atoms', 'Molecules', 'Reactions', 'Bonds', 'States of Matter'],
    ),
})

NAVIGATION_KEYWORDS = (
    'where', 'find', 'locate', 'show me', 'how to access',
    'resources', 'materials', 'lectures', 'notes', 'semester',
)

COURSE_CODE_RE = re.compile(r'\b([A-Za-z]{2,3})\s*(\d{3})\b')
# "3rd sem", "2 semesters", and also "semester 3" / "semester 3rd"
SEMESTER_RE = re.compile(
    r'\b(\d)\s*(?:st|nd|rd|th)?\s*sem(?:ester)?s?\b|\bsem(?:ester)?s?\s*(\d)(?:st|nd|rd|th)?\b',
    re.IGNORECASE,
)


def get_course_info(code: str) -> Optional[CourseRecord]:
    normalized = re.sub(r'\s+', '', code or '').upper()
    return COURSE_DATABASE.get(normalized)


def get_semester_resources(semester: Union[int, str]) -> Optional[SemesterResourceBundle]:
    return SEMESTER_RESOURCES.get(str(semester).strip())


def get_topic_info(name: str) -> Optional[TopicInfo]:
    return EDUCATIONAL_TOPICS.get((name or '').strip().lower())


def is_navigation_query(text: str) -> bool:
    lowered = (text or '').lower()
    return any(keyword in lowered for keyword in NAVIGATION_KEYWORDS)


def extract_course_code(text: str) -> Optional[str]:
    # Only the first code-shaped token is considered
    match = COURSE_CODE_RE.search(text or '')
    if not match:
        return None
    code = f"{match.group(1)}{match.group(2)}".upper()
    return code if code in COURSE_DATABASE else None


def extract_semester_number(text: str) -> Optional[str]:
    match = SEMESTER_RE.search(text or '')
    if not match:
        return None
    return match.group(1) or match.group(2)


def detect_topic(text: str) -> Optional[str]:
    lowered = (text or '').lower()
    for name in EDUCATIONAL_TOPICS:
        if name in lowered:
            return name
    return None


def classify(text: str) -> IntentResult:
    result = IntentResult(
        course_code=extract_course_code(text),
        is_navigation=is_navigation_query(text),
        topic=detect_topic(text),
    )
    if result.is_navigation:
        semester = extract_semester_number(text)
        if semester is not None:
            result.semester = semester
            result.semester_resources = get_semester_resources(semester)
    return result
