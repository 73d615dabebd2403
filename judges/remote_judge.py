"""Judge that delegates to a remote judging worker over HTTP."""

import asyncio
import logging

import httpx

from battles.models import Battle, Cast

from .base import BaseJudge, JudgeResult, JudgingError, WinnerSelection

logger = logging.getLogger(__name__)


class RemoteJudge(BaseJudge):
    """POSTs battles to a judging worker's /judge endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 60.0,
        max_retries: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self._transport = transport

    @property
    def name(self) -> str:
        return f"Remote Judge ({self.base_url})"

    async def judge(self, battle: Battle, casts: list[Cast]) -> JudgeResult:
        if not casts:
            return JudgeResult(winner=None, metadata={"reason": "no casts"})

        payload = {
            "battle": battle.model_dump(mode="json"),
            "casts": [cast.model_dump(mode="json") for cast in casts],
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key

        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(
                    base_url=self.base_url, timeout=self.timeout, transport=self._transport
                ) as client:
                    response = await client.post("/judge", json=payload, headers=headers)
                    response.raise_for_status()
                    data = response.json()
                return self._parse_response(data, casts)
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                logger.warning(
                    f"Remote judging attempt {attempt + 1}/{self.max_retries + 1} failed: {e}"
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(2**attempt)

        raise JudgingError(f"Remote judging failed: {last_error}")

    def _parse_response(self, data: dict, casts: list[Cast]) -> JudgeResult:
        winner_data = data.get("winner")
        if not winner_data:
            logger.info("Remote judge returned no winner")
            return JudgeResult(winner=None, metadata=data.get("metadata") or {})

        cast_id = winner_data.get("cast_id") or winner_data.get("castId")
        winning_cast = self._find_cast(casts, str(cast_id))

        score = winner_data.get("score")
        return JudgeResult(
            winner=WinnerSelection(
                user_id=winning_cast.user_id,
                cast_id=winning_cast.id,
                side=winning_cast.side,
                selection_method=winner_data.get("selection_method", "remote"),
                selection_reason=winner_data.get("reasoning", ""),
                score=float(score) if score is not None else None,
            ),
            metadata=data.get("metadata") or {},
        )
