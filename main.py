import csv
import time
import logging
from datetime import datetime, timezone
from io import BytesIO, StringIO
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware

import config
from schemas import (
    AcademicRecord,
    CalculateRequest,
    CalculationResponse,
    CalculatorConfig,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    CourseRecord,
    GradingSystemsResponse,
    IntentRequest,
    IntentResult,
    PercentageFormula,
    RecordRequest,
    Semester,
    SemesterResourceBundle,
    SubjectLocator,
    SubjectRemoveRequest,
    SubjectUpdateRequest,
    TopicInfo,
    GRADE_POINTS,
    MAX_SUBJECTS_PER_SEMESTER,
    MAX_YEARS,
)
from grades import (
    add_subject,
    add_year,
    calculate,
    find_semester,
    new_record,
    remove_subject,
    update_subject_field,
)
from educational import classify, get_course_info, get_semester_resources, get_topic_info
from chat import LLMError, LLMUnavailable, complete, prepare_messages
from database import db, load_record, save_record

# Optional heavy import for PDF generation
try:
    from reportlab.lib.pagesizes import A4
    from reportlab.pdfgen import canvas
    REPORTLAB_AVAILABLE = True
except ImportError:
    REPORTLAB_AVAILABLE = False

config.configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Student Portal Grade & Assistant API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    latency_ms = int((time.perf_counter() - start) * 1000)
    logger.info("%s %s -> %s (%d ms)", request.method, request.url.path, response.status_code, latency_ms)
    return response


@app.get("/")
def read_root():
    return {"message": "Student Portal Grade & Assistant API running"}


@app.get("/api/health")
def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": config.APP_ENV,
        "database": db is not None,
    }


# ---------- Grade calculator ----------

@app.get("/api/grading-systems", response_model=GradingSystemsResponse)
def grading_systems():
    return GradingSystemsResponse(
        grading_systems={system.value: dict(points) for system, points in GRADE_POINTS.items()},
        percentage_formulas=[f.value for f in PercentageFormula],
    )


@app.post("/api/calculate", response_model=CalculationResponse)
def api_calculate(req: CalculateRequest):
    return calculate(req.record, req.config)


@app.get("/api/record/new", response_model=AcademicRecord)
def api_new_record():
    return new_record()


@app.post("/api/record/years", response_model=AcademicRecord)
def api_add_year(req: RecordRequest):
    if not add_year(req.record):
        raise HTTPException(status_code=409, detail=f"You can add at most {MAX_YEARS} years.")
    return req.record


def _require_semester(req: SubjectLocator, subject_id: Optional[str] = None) -> Semester:
    semester = find_semester(req.record, req.year_id, req.semester_id)
    if semester is None:
        raise HTTPException(status_code=404, detail=f"Semester {req.semester_id} not found in year {req.year_id}")
    if subject_id is not None and not any(s.id == subject_id for s in semester.subjects):
        raise HTTPException(status_code=404, detail=f"Subject {subject_id} not found")
    return semester


@app.post("/api/record/subjects", response_model=AcademicRecord)
def api_add_subject(req: SubjectLocator):
    _require_semester(req)
    if not add_subject(req.record, req.year_id, req.semester_id):
        raise HTTPException(
            status_code=409,
            detail=f"A semester can hold at most {MAX_SUBJECTS_PER_SEMESTER} subjects.",
        )
    return req.record


@app.patch("/api/record/subjects", response_model=AcademicRecord)
def api_update_subject(req: SubjectUpdateRequest):
    _require_semester(req, req.subject_id)
    ok = update_subject_field(req.record, req.year_id, req.semester_id, req.subject_id, req.field, req.value)
    if not ok:
        raise HTTPException(status_code=409, detail=f"Invalid value for '{req.field}' of subject {req.subject_id}.")
    return req.record


@app.post("/api/record/subjects/remove", response_model=AcademicRecord)
def api_remove_subject(req: SubjectRemoveRequest):
    _require_semester(req, req.subject_id)
    remove_subject(req.record, req.year_id, req.semester_id, req.subject_id)
    return req.record


# ---------- Course assistant ----------

@app.get("/api/courses/{code}", response_model=CourseRecord)
def api_course(code: str):
    course = get_course_info(code)
    if course is None:
        raise HTTPException(status_code=404, detail=f"Course '{code}' not found")
    return course


@app.get("/api/semesters/{number}/resources", response_model=SemesterResourceBundle)
def api_semester_resources(number: str):
    bundle = get_semester_resources(number)
    if bundle is None:
        raise HTTPException(status_code=404, detail=f"No resources for semester '{number}'")
    return bundle


@app.get("/api/topics/{name}", response_model=TopicInfo)
def api_topic(name: str):
    topic = get_topic_info(name)
    if topic is None:
        raise HTTPException(status_code=404, detail=f"Topic '{name}' not found")
    return topic


@app.post("/api/intent", response_model=IntentResult)
def api_intent(req: IntentRequest):
    return classify(req.text)


@app.post("/api/chat", response_model=ChatResponse)
def api_chat(req: ChatRequest):
    if not req.messages:
        raise HTTPException(status_code=400, detail="Messages array is required")
    messages, intent = prepare_messages(req.messages)
    try:
        reply = complete(messages)
    except LLMUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except LLMError as e:
        raise HTTPException(status_code=502, detail={"error": "Failed to get response from AI", "details": str(e)})
    return ChatResponse(
        message=ChatMessage(role="assistant", content=str(reply.get("content") or "")),
        intent=intent,
    )


# ---------- Export Endpoints ----------

@app.post("/api/export/csv")
def export_csv(req: CalculateRequest):
    result = calculate(req.record, req.config)
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["Year", "Semester", "Subject", "Credits", "Grade", "Grade Points"])
    for year in result.record.years:
        for sem in year.semesters:
            for s in sem.subjects:
                writer.writerow([year.name, sem.name, s.name, s.credits, s.grade or "", s.grade_points])
    writer.writerow([])
    writer.writerow(["CGPA", result.cgpa])
    writer.writerow(["Percentage", result.percentage])
    writer.writerow(["Total Credits", result.total_credits])
    csv_bytes = output.getvalue().encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": "attachment; filename=grades.csv"})


@app.post("/api/export/pdf")
def export_pdf(req: CalculateRequest):
    if not REPORTLAB_AVAILABLE:
        raise HTTPException(status_code=503, detail="PDF engine not available on server.")
    result = calculate(req.record, req.config)
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    c.setFont("Helvetica-Bold", 14)
    c.drawString(40, height - 40, "Grade Report")
    c.setFont("Helvetica", 10)
    y = height - 70
    c.drawString(40, y, f"CGPA: {result.cgpa:.2f}   Percentage: {result.percentage:.2f}%   Credits: {result.total_credits}")
    y -= 20
    c.drawString(40, y, f"Grading system: {result.grading_system.value}   Formula: {result.percentage_formula.value}")
    y -= 30

    sgpa_by_id = {s.semester_id: s.sgpa for s in result.semesters}
    c.setFont("Helvetica", 9)
    for year in result.record.years:
        for sem in year.semesters:
            c.drawString(40, y, f"{year.name} / {sem.name}: SGPA {sgpa_by_id.get(sem.id, 0.0):.2f}")
            y -= 16
            for s in sem.subjects:
                line = f" - {s.name or '(unnamed)'} | {s.credits} CR | Grade: {s.grade or '-'}"
                c.drawString(48, y, line)
                y -= 14
                if y < 60:
                    c.showPage()
                    y = height - 60
                    c.setFont("Helvetica", 9)
    c.showPage()
    c.save()

    pdf = buffer.getvalue()
    return Response(content=pdf, media_type="application/pdf", headers={"Content-Disposition": "attachment; filename=grade_report.pdf"})


# ---------- Persistence ----------

@app.put("/api/records/{user_id}", response_model=Dict[str, Any])
def api_save_record(user_id: str, record: AcademicRecord):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not connected")
    saved = save_record(user_id, record.model_dump())
    return {"user_id": user_id, "record": saved.get("record", {})}


@app.get("/api/records/{user_id}", response_model=AcademicRecord)
def api_load_record(user_id: str):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not connected")
    stored = load_record(user_id)
    if stored is None:
        return new_record()
    return AcademicRecord.model_validate(stored)


# ---------- Self-test endpoint ----------

@app.get("/api/selftest")
def selftest():
    record = new_record()
    year = record.years[0]
    sem = year.semesters[0]
    add_subject(record, year.id, sem.id)
    update_subject_field(record, year.id, sem.id, sem.subjects[0].id, "grade", "A")
    result = calculate(record, CalculatorConfig())
    intent = classify("Where can I find CSE201 notes?")
    return {"ok": True, "pdf": REPORTLAB_AVAILABLE, "cgpa": result.cgpa, "intent": intent.model_dump()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
