import io
import json
import logging
import time
from typing import Any, Dict, List, Optional
import pandas as pd
from fastapi import Body, Depends, FastAPI, File, HTTPException, Request, Response, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from .config import load_settings
from .engine import ScoringEngine, rank_scores, summarize
from .errors import CaseNotFoundError, MalformedCaseError, RuleConfigError, UnknownRuleError
from .models import BatchRequest, BatchResult, LeadScore, RuleUpdate, ScoringRule, Summary
from .stores import log_event, scores_frame


app = FastAPI(title="Lead/Case Scoring Engine")


settings = load_settings()
logger = logging.getLogger("leadscore")
logging.basicConfig(level=settings.log_level, format="%(message)s")

_engine: Optional[ScoringEngine] = None


def get_engine() -> ScoringEngine:
    global _engine
    if _engine is None:
        _engine = ScoringEngine.from_settings(settings, event_sink=log_event)
    return _engine


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    rid = request.headers.get("X-Request-ID") or str(int(time.time() * 1000))
    start = time.time()
    response: Optional[Response] = None
    try:
        response = await call_next(request)
    finally:
        duration_ms = int((time.time() - start) * 1000)
        logger.info(json.dumps({
            "request_id": rid,
            "endpoint": request.url.path,
            "method": request.method,
            "status": response.status_code if response is not None else 500,
            "latency_ms": duration_ms,
        }))
    response.headers["X-Request-ID"] = rid
    return response


@app.get("/health")
def health() -> Dict[str, bool]:
    return {"ok": True}


@app.get("/config/rules", response_model=List[ScoringRule])
def get_rules(engine: ScoringEngine = Depends(get_engine)) -> List[ScoringRule]:
    return list(engine.rules())


@app.put("/config/rules", response_model=List[ScoringRule])
def put_rules(body: Any = Body(...), engine: ScoringEngine = Depends(get_engine)) -> List[ScoringRule]:
    try:
        return list(engine.rule_store.save(body))
    except RuleConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.patch("/config/rules/{rule_id}", response_model=ScoringRule)
def patch_rule(rule_id: str, update: RuleUpdate, engine: ScoringEngine = Depends(get_engine)) -> ScoringRule:
    try:
        return engine.update_rule(rule_id, weight=update.weight, enabled=update.enabled)
    except UnknownRuleError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RuleConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.post("/cases/ingest_csv")
async def ingest_csv(file: UploadFile = File(...), column_map: Optional[str] = None, engine: ScoringEngine = Depends(get_engine)) -> Dict[str, Any]:
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Expected a CSV file")
    content = await file.read()
    try:
        df = pd.read_csv(io.BytesIO(content), dtype=str)
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid CSV")
    cm: Optional[Dict[str, str]] = None
    if column_map:
        try:
            cm = json.loads(column_map)
        except ValueError:
            raise HTTPException(status_code=400, detail="column_map must be JSON string")
    loaded, rejected = engine.cases.load_frame(df, cm)
    logger.info(json.dumps({"event": "cases_ingested", "file": file.filename, "count_in": len(df), "loaded": loaded, "rejected": len(rejected)}))
    return {"count_in": len(df), "loaded": loaded, "rejected": rejected}


@app.post("/cases/{case_id}/score", response_model=LeadScore)
def score_case(case_id: str, engine: ScoringEngine = Depends(get_engine)) -> LeadScore:
    try:
        return engine.score_one(case_id)
    except CaseNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except MalformedCaseError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.post("/score/batch", response_model=BatchResult)
def score_batch(req: Optional[BatchRequest] = None, engine: ScoringEngine = Depends(get_engine)) -> BatchResult:
    cases = req.cases if req is not None else None
    return engine.score_all(cases)


@app.get("/scores")
def list_scores(
    sort_by: str = "score",
    grade: Optional[str] = None,
    priority: Optional[str] = None,
    search: Optional[str] = None,
    format: Optional[str] = None,
    engine: ScoringEngine = Depends(get_engine),
):
    try:
        ranked = rank_scores(engine.scores.all(), sort_by=sort_by, grade=grade, priority=priority, search=search)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if format == "csv":
        df = scores_frame(ranked)
        buf = io.StringIO()
        df.to_csv(buf, index=False)
        buf.seek(0)
        headers = {"Content-Disposition": f"attachment; filename=lead_scores_{int(time.time())}.csv"}
        return StreamingResponse(iter([buf.getvalue()]), media_type="text/csv", headers=headers)
    return JSONResponse(content=[s.model_dump(mode="json") for s in ranked])


@app.get("/scores/summary", response_model=Summary)
def scores_summary(engine: ScoringEngine = Depends(get_engine)) -> Summary:
    return summarize(engine.scores.all())


@app.get("/scores/{case_id}", response_model=LeadScore)
def get_score(case_id: str, engine: ScoringEngine = Depends(get_engine)) -> LeadScore:
    score = engine.get_score(case_id)
    if score is None:
        raise HTTPException(status_code=404, detail=f"no score for case: {case_id}")
    return score
