"""HTTP ingestion endpoint for crawlers that push one article at a time."""

from __future__ import annotations

import hashlib
import json
import logging
import secrets
from datetime import datetime
from urllib.parse import urlparse

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, StrictStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from newsdesk.errors import AuthError, ValidationError
from newsdesk.ingest.normalize import parse_published
from newsdesk.models import NormalizedArticle, utcnow
from newsdesk.pipeline import NewsPipeline

logger = logging.getLogger(__name__)


class IngestRequest(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    url: str
    published_at: datetime
    source: str = Field(min_length=1, max_length=100)
    summary: str = ""
    tier: int = Field(default=4, ge=1, le=5, strict=True)
    symbols: list[StrictStr] = Field(default_factory=list)
    translated_title: str | None = None
    translated_summary: str | None = None
    ai_commentary: str | None = None
    region: str | None = Field(default=None, max_length=20)

    @field_validator("summary", "symbols", mode="before")
    @classmethod
    def _null_as_default(cls, v, info):
        if v is None:
            return "" if info.field_name == "summary" else []
        return v

    @field_validator("url")
    @classmethod
    def _check_url(cls, v: str) -> str:
        v = v.strip()
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("must be an absolute http(s) URL")
        return v

    @field_validator("published_at", mode="before")
    @classmethod
    def _parse_date(cls, v):
        if isinstance(v, str):
            parsed = parse_published(v)
            if parsed is None:
                raise ValueError("must be a parseable date")
            return parsed
        return v

    def to_article(self) -> NormalizedArticle:
        url_digest = hashlib.md5(self.url.encode()).hexdigest()[:12]
        return NormalizedArticle(
            external_id=f"{self.source}:{url_digest}",
            title=self.title.strip(),
            url=self.url,
            published_at=self.published_at,
            summary=self.summary.strip(),
            body=self.summary.strip(),
            symbols=[s.strip().upper() for s in self.symbols if s.strip()],
            entities={"source": self.source},
            region=self.region or "Global",
            tags=["api", f"tier{self.tier}"],
            translated_title=self.translated_title,
            translated_summary=self.translated_summary,
            ai_commentary=self.ai_commentary,
        )


def _format_validation_error(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else err.get("msg", ""))
    return "; ".join(parts)


def check_auth(authorization: str | None, secret: str) -> None:
    """Accept `Bearer <secret>` or the bare secret. Raises AuthError."""
    if not secret:
        return
    if not authorization:
        raise AuthError("Missing Authorization header")
    token = authorization.strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    if not secrets.compare_digest(token.encode(), secret.encode()):
        raise AuthError("Invalid ingestion token")


def _error(status: int, stage: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"ok": False, "error": message, "stage": stage})


def create_app(pipeline: NewsPipeline, secret: str = "") -> FastAPI:
    app = FastAPI(title="newsdesk ingestion API")

    if not secret:
        logger.warning("No ingestion secret configured; /api/news/ingest is open")

    @app.get("/api/health")
    async def health():
        return {"ok": True, "status": "healthy", "time": utcnow().isoformat()}

    @app.post("/api/news/ingest")
    async def ingest(request: Request, authorization: str | None = Header(default=None)):
        try:
            check_auth(authorization, secret)
        except AuthError as exc:
            logger.warning("Rejected ingestion request: %s", exc)
            return _error(401, "auth", str(exc))

        try:
            body = json.loads(await request.body())
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error(400, "validation", "Request body must be valid JSON")
        if not isinstance(body, dict):
            return _error(400, "validation", "Request body must be a JSON object")

        try:
            req = IngestRequest.model_validate(body)
            article = req.to_article()
            article.validate()
        except PydanticValidationError as exc:
            return _error(400, "validation", _format_validation_error(exc))
        except ValidationError as exc:
            return _error(400, "validation", str(exc))

        try:
            pipeline.ensure_source(req.source, req.tier)
            outcome = await pipeline.process_article(article, req.tier, req.source)
        except Exception as exc:
            logger.exception("Ingestion failed for %s", req.url)
            return _error(500, "processing", str(exc))

        response = {"ok": True, "action": outcome.action}
        for key in ("channel", "score", "message_id", "reason"):
            value = getattr(outcome, key)
            if value is not None:
                response[key] = value
        return response

    return app
