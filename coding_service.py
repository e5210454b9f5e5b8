# coding_service.py
import httpx
import logging
from typing import List, Optional
from fastapi import HTTPException
from pydantic import ValidationError

import config
from models import CodeExtractConfig, CodeExtractRequest, CodeExtractResponse, CodingSystem, ExtractedCode

logger = logging.getLogger(__name__)


class CodingAuthError(HTTPException):
    """The coding service rejected our credentials. Unlike a failed extraction, this is not recoverable per item."""

    def __init__(self, detail: str):
        super().__init__(status_code=502, detail=detail)


class CodingService:
    """
    Client for the natural-language to medical-code extraction service.

    Authentication is a basic-auth exchange for a bearer token. The token is
    fetched on first use and reused for the lifetime of the instance.
    """

    def __init__(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
        base_url: Optional[str] = None,
        system: Optional[CodingSystem] = None,
        extract_config: Optional[CodeExtractConfig] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.username = username if username is not None else config.PHENO_USERNAME
        self.password = password if password is not None else config.PHENO_PASSWORD
        self.base_url = (base_url or config.CODING_BASE_URL).rstrip("/")
        self.system = system or CodingSystem(name=config.CODING_SYSTEM_NAME, version=config.CODING_SYSTEM_VERSION)
        self.extract_config = extract_config or CodeExtractConfig()
        self.timeout = timeout or config.CODING_TIMEOUT_SECONDS
        self._transport = transport
        self._token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    async def authenticate(self) -> None:
        """Exchanges the configured credentials for a bearer token."""
        if not self.username or not self.password:
            raise CodingAuthError("Coding service credentials (PHENO_USERNAME/PHENO_PASSWORD) are not configured.")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/auth/token",
                    auth=(self.username, self.password),
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()
                token = response.json().get("token")
            except httpx.TimeoutException:
                raise CodingAuthError("Authentication with the coding service timed out.")
            except httpx.HTTPStatusError as e:
                raise CodingAuthError(f"Authentication with the coding service failed: {e.response.status_code}.")
            except httpx.RequestError as e:
                raise CodingAuthError(f"Could not connect to the coding service: {e}")
            except (ValueError, AttributeError):
                raise CodingAuthError("Coding service returned an unreadable token response.")

        if not token:
            raise CodingAuthError("Coding service did not return a token.")

        self._token = token
        logger.info("Authenticated with coding service at %s", self.base_url)

    async def ensure_authenticated(self) -> None:
        if not self.is_authenticated:
            await self.authenticate()

    async def extract_codes(self, text: str) -> List[ExtractedCode]:
        """Returns the codes the service finds in one description, treated as a single chunk."""
        await self.ensure_authenticated()

        request = CodeExtractRequest(text=text, system=self.system, config=self.extract_config)
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/construe/extract",
                    headers=headers,
                    json=request.model_dump(),
                )
                response.raise_for_status()
                parsed = CodeExtractResponse.model_validate(response.json())
            except httpx.TimeoutException:
                raise HTTPException(status_code=504, detail="Request to coding service timed out.")
            except httpx.HTTPStatusError as e:
                raise HTTPException(status_code=502, detail=f"Coding service returned an error: {e.response.status_code}.")
            except httpx.RequestError as e:
                raise HTTPException(status_code=503, detail=f"Could not connect to coding service: {e}")
            except ValidationError as e:
                raise HTTPException(
                    status_code=502,
                    detail=f"No usable codes returned from the coding service ({e.error_count()} validation errors).",
                )
            except ValueError:
                # Undecodable bytes as well as malformed JSON.
                raise HTTPException(status_code=502, detail="Coding service returned a non-JSON response.")

        return parsed.codes
