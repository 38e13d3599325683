import httpx
from fastapi.testclient import TestClient

import chat
import main
from main import app
from chat import LLMError, LLMUnavailable

client = TestClient(app)


def _record_with_grades(*grades):
    r = client.get('/api/record/new')
    record = r.json()
    year = record['years'][0]
    sem = year['semesters'][0]
    for credits, grade in grades:
        sem['subjects'].append({"name": "S", "credits": credits, "grade": grade})
    return record


def test_root():
    r = client.get('/')
    assert r.status_code == 200
    assert 'Grade' in r.json()['message']


def test_health():
    r = client.get('/api/health')
    assert r.status_code == 200
    assert r.json()['status'] == 'ok'


def test_grading_systems():
    r = client.get('/api/grading-systems')
    assert r.status_code == 200
    data = r.json()
    assert data['grading_systems']['ten_point']['A'] == 8.0
    assert 'scale-10-offset-7.5' in data['percentage_formulas']


def test_calculate_basic():
    record = _record_with_grades((4, 'A'), (2, 'B'))
    r = client.post('/api/calculate', json={"record": record})
    assert r.status_code == 200
    data = r.json()
    assert data['cgpa'] == 7.33
    assert data['total_credits'] == 6
    assert data['percentage'] == 73.33
    assert data['semesters'][0]['sgpa'] == 7.33
    assert data['record']['years'][0]['semesters'][0]['subjects'][0]['grade_points'] == 32.0


def test_calculate_with_config():
    record = _record_with_grades((3, 'S'))
    payload = {"record": record, "config": {"grading_system": "vtu", "percentage_formula": "scale-9.5"}}
    r = client.post('/api/calculate', json=payload)
    assert r.status_code == 200
    assert r.json()['cgpa'] == 10.0
    assert r.json()['percentage'] == 95.0


def test_calculate_rejects_unknown_formula():
    record = _record_with_grades((3, 'A'))
    payload = {"record": record, "config": {"percentage_formula": "magic"}}
    r = client.post('/api/calculate', json=payload)
    assert r.status_code == 422


def test_add_year_until_cap():
    record = client.get('/api/record/new').json()
    for expected in (2, 3, 4):
        r = client.post('/api/record/years', json={"record": record})
        assert r.status_code == 200
        record = r.json()
        assert len(record['years']) == expected
    r = client.post('/api/record/years', json={"record": record})
    assert r.status_code == 409


def test_subject_lifecycle():
    record = client.get('/api/record/new').json()
    year_id = record['years'][0]['id']
    sem_id = record['years'][0]['semesters'][0]['id']
    loc = {"year_id": year_id, "semester_id": sem_id}

    r = client.post('/api/record/subjects', json={"record": record, **loc})
    assert r.status_code == 200
    record = r.json()
    subject_id = record['years'][0]['semesters'][0]['subjects'][0]['id']

    r = client.patch('/api/record/subjects', json={
        "record": record, **loc, "subject_id": subject_id, "field": "grade", "value": "o",
    })
    assert r.status_code == 200
    record = r.json()
    assert record['years'][0]['semesters'][0]['subjects'][0]['grade'] == 'O'

    r = client.patch('/api/record/subjects', json={
        "record": record, **loc, "subject_id": subject_id, "field": "credits", "value": "lots",
    })
    assert r.status_code == 409

    r = client.post('/api/record/subjects/remove', json={"record": record, **loc, "subject_id": subject_id})
    assert r.status_code == 200
    assert r.json()['years'][0]['semesters'][0]['subjects'] == []


def test_eleventh_subject_rejected():
    record = _record_with_grades(*[(3, 'A')] * 10)
    loc = {"year_id": record['years'][0]['id'], "semester_id": record['years'][0]['semesters'][0]['id']}
    r = client.post('/api/record/subjects', json={"record": record, **loc})
    assert r.status_code == 409


def test_course_lookup():
    r = client.get('/api/courses/cse201')
    assert r.status_code == 200
    assert r.json()['name'] == 'Computer Science Engineering 201'
    assert client.get('/api/courses/ABC999').status_code == 404


def test_semester_and_topic_lookup():
    r = client.get('/api/semesters/1/resources')
    assert r.status_code == 200
    assert 'ITC101' in r.json()['courses']
    assert client.get('/api/semesters/8/resources').status_code == 404
    assert client.get('/api/topics/chemistry').status_code == 200
    assert client.get('/api/topics/art').status_code == 404


def test_intent():
    r = client.post('/api/intent', json={"text": "Where are my semester 3 notes?"})
    assert r.status_code == 200
    data = r.json()
    assert data['is_navigation'] is True
    assert data['semester'] == '3'
    assert data['semester_resources']['path'] == '/resources/semester3'


def test_chat_requires_messages():
    r = client.post('/api/chat', json={"messages": []})
    assert r.status_code == 400


def test_chat_forwards_enriched_prompt(monkeypatch):
    seen = {}

    def fake_complete(messages):
        seen['messages'] = messages
        return {"role": "assistant", "content": "Check /resources/cse201/lectures"}

    monkeypatch.setattr(main, "complete", fake_complete)
    r = client.post('/api/chat', json={"messages": [{"role": "user", "content": "Where are the CSE201 lectures?"}]})
    assert r.status_code == 200
    data = r.json()
    assert data['message']['content'].startswith('Check')
    assert data['intent']['course_code'] == 'CSE201'
    assert seen['messages'][0]['role'] == 'system'
    assert '/resources/cse201/lectures' in seen['messages'][0]['content']


def test_chat_upstream_errors(monkeypatch):
    def unavailable(messages):
        raise LLMUnavailable("LLM API key is not configured")

    def failing(messages):
        raise LLMError("timeout")

    monkeypatch.setattr(main, "complete", unavailable)
    r = client.post('/api/chat', json={"messages": [{"role": "user", "content": "hi"}]})
    assert r.status_code == 503

    monkeypatch.setattr(main, "complete", failing)
    r = client.post('/api/chat', json={"messages": [{"role": "user", "content": "hi"}]})
    assert r.status_code == 502
    assert r.json()['detail']['details'] == 'timeout'


def test_export_csv():
    record = _record_with_grades((4, 'A'))
    r = client.post('/api/export/csv', json={"record": record})
    assert r.status_code == 200
    assert r.headers['content-type'].startswith('text/csv')
    assert 'CGPA,8.0' in r.text


def test_export_pdf():
    record = _record_with_grades((4, 'A'))
    r = client.post('/api/export/pdf', json={"record": record})
    if main.REPORTLAB_AVAILABLE:
        assert r.status_code == 200
        assert r.content.startswith(b'%PDF')
    else:
        assert r.status_code == 503


def test_records_without_database(monkeypatch):
    monkeypatch.setattr(main, "db", None)
    assert client.get('/api/records/u1').status_code == 500


def test_records_roundtrip(monkeypatch):
    store = {}

    def fake_save(user_id, record):
        store[user_id] = record
        return {"user_id": user_id, "record": record}

    monkeypatch.setattr(main, "db", object())
    monkeypatch.setattr(main, "save_record", fake_save)
    monkeypatch.setattr(main, "load_record", lambda user_id: store.get(user_id))

    r = client.get('/api/records/u1')
    assert r.status_code == 200
    assert len(r.json()['years']) == 1

    record = _record_with_grades((3, 'B'))
    r = client.put('/api/records/u1', json=record)
    assert r.status_code == 200
    r = client.get('/api/records/u1')
    assert r.json()['years'][0]['semesters'][0]['subjects'][0]['grade'] == 'B'


def test_selftest():
    r = client.get('/api/selftest')
    assert r.status_code == 200
    assert r.json()['cgpa'] == 8.0
    assert r.json()['intent']['course_code'] == 'CSE201'


def test_calculate_rejects_semester_over_subject_cap():
    record = _record_with_grades(*[(3, 'A')] * 11)
    r = client.post('/api/calculate', json={"record": record})
    assert r.status_code == 422


def test_records_over_year_cap_are_rejected():
    record = client.get('/api/record/new').json()
    record['years'] = [
        {"name": f"Year {i}", "semesters": [{"name": "S1"}, {"name": "S2"}]} for i in range(1, 6)
    ]
    assert client.post('/api/calculate', json={"record": record}).status_code == 422
    assert client.post('/api/export/csv', json={"record": record}).status_code == 422
    assert client.put('/api/records/u1', json=record).status_code == 422


def test_year_with_three_semesters_rejected():
    record = client.get('/api/record/new').json()
    record['years'][0]['semesters'].append({"name": "Extra"})
    assert client.post('/api/calculate', json={"record": record}).status_code == 422


def test_unknown_ids_are_not_found():
    record = client.get('/api/record/new').json()
    year_id = record['years'][0]['id']
    sem_id = record['years'][0]['semesters'][0]['id']

    r = client.post('/api/record/subjects', json={"record": record, "year_id": year_id, "semester_id": "missing"})
    assert r.status_code == 404
    r = client.patch('/api/record/subjects', json={
        "record": record, "year_id": year_id, "semester_id": sem_id,
        "subject_id": "missing", "field": "name", "value": "x",
    })
    assert r.status_code == 404
    r = client.post('/api/record/subjects/remove', json={
        "record": record, "year_id": year_id, "semester_id": sem_id, "subject_id": "missing",
    })
    assert r.status_code == 404


def test_chat_malformed_upstream_reply(monkeypatch):
    request = httpx.Request("POST", "https://llm.test/v1/chat/completions")
    response = httpx.Response(200, json={"choices": None}, request=request)

    class _Client:
        def __init__(self, **kwargs):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def post(self, url, json=None, headers=None):
            return response

    monkeypatch.setattr(chat.config, "LLM_API_KEY", "test-key")
    monkeypatch.setattr(chat.httpx, "Client", _Client)
    r = client.post('/api/chat', json={"messages": [{"role": "user", "content": "hi"}]})
    assert r.status_code == 502
    assert r.json()['detail']['error'] == 'Failed to get response from AI'
