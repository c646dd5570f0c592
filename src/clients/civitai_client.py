"""
Civitai API Client

Handles communication with the Civitai API:
- Model lookups for the description viewer
- Image list normalization
- Rate limiting and error handling
"""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import requests
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class CivitaiImage(BaseModel):
    """Preview image from Civitai, normalized from either URL or object form."""
    url: str
    nsfw: Optional[Union[bool, str]] = None
    width: Optional[int] = None
    height: Optional[int] = None
    meta: Optional[Dict[str, Any]] = None


def normalize_images(raw: Any) -> List[CivitaiImage]:
    """
    Normalize a Civitai image list.

    Entries may be bare URL strings or objects with ``url``; entries
    without a URL are dropped.
    """
    if not isinstance(raw, list):
        return []
    images: List[CivitaiImage] = []
    for img in raw:
        if isinstance(img, str):
            if img:
                images.append(CivitaiImage(url=img))
        elif isinstance(img, dict) and img.get("url"):
            meta = img.get("meta")
            images.append(CivitaiImage(
                url=img["url"],
                nsfw=img.get("nsfw") if isinstance(img.get("nsfw"), (bool, str)) else None,
                width=img.get("width") if isinstance(img.get("width"), int) else None,
                height=img.get("height") if isinstance(img.get("height"), int) else None,
                meta=meta if isinstance(meta, dict) else None,
            ))
    return images


@dataclass
class CivitaiModelVersion:
    """Parsed model version data from Civitai API."""
    id: int
    model_id: int
    name: str
    description: Optional[str]
    base_model: Optional[str]
    images: List[CivitaiImage]
    trained_words: List[str]
    created_at: Optional[str] = None

    @classmethod
    def from_api_response(cls, data: Dict[str, Any], model_id: int) -> 'CivitaiModelVersion':
        return cls(
            id=data.get("id", 0),
            model_id=model_id,
            name=data.get("name", ""),
            description=data.get("description"),
            base_model=data.get("baseModel"),
            images=normalize_images(data.get("images", [])),
            trained_words=data.get("trainedWords") or [],
            created_at=data.get("createdAt"),
        )


@dataclass
class CivitaiModel:
    """Parsed model data from Civitai API."""
    id: int
    name: str
    description: Optional[str]
    type: str
    model_versions: List[CivitaiModelVersion] = field(default_factory=list)
    images: List[CivitaiImage] = field(default_factory=list)

    @classmethod
    def from_api_response(cls, data: Dict[str, Any]) -> 'CivitaiModel':
        model_id = data.get("modelId") or data.get("id", 0)
        return cls(
            id=model_id,
            name=data.get("name", ""),
            description=data.get("description"),
            type=data.get("type", ""),
            model_versions=[
                CivitaiModelVersion.from_api_response(v, model_id)
                for v in data.get("modelVersions") or []
                if isinstance(v, dict)
            ],
            images=normalize_images(data.get("images", [])),
        )

    @property
    def first_version(self) -> Optional[CivitaiModelVersion]:
        return self.model_versions[0] if self.model_versions else None

    @property
    def preview_images(self) -> List[CivitaiImage]:
        """Images of the first version, else top-level images."""
        if self.first_version and self.first_version.images:
            return self.first_version.images
        return self.images


class CivitaiClient:
    """
    Client for the Civitai API.

    Features:
    - Model lookup
    - Rate limiting
    - Optional API key
    """

    BASE_URL = "https://civitai.com/api/v1"

    def __init__(
        self,
        api_key: Optional[str] = None,
        requests_per_minute: int = 30,
        timeout: int = 30,
    ):
        self.api_key = api_key or os.environ.get("CIVITAI_API_KEY")
        self.requests_per_minute = requests_per_minute
        self.timeout = timeout
        self._last_request_time = 0.0
        self._request_interval = 60.0 / requests_per_minute

        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": "Mozilla/5.0 (compatible; Atelier/1.0)",
            "Accept": "application/json",
        })
        if self.api_key:
            self.session.headers["Authorization"] = f"Bearer {self.api_key}"

    def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self._request_interval:
            time.sleep(self._request_interval - elapsed)
        self._last_request_time = time.time()

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> requests.Response:
        """Make a rate-limited API request."""
        self._rate_limit()

        url = f"{self.BASE_URL}/{endpoint}"
        logger.debug("[civitai] %s %s", method, url)
        response = self.session.request(
            method,
            url,
            params=params,
            timeout=self.timeout,
            **kwargs
        )
        response.raise_for_status()
        return response

    def get_model(self, model_id: int) -> Dict[str, Any]:
        """Fetch model details by ID. Returns raw API response dict."""
        response = self._request("GET", f"models/{model_id}")
        return response.json()


def create_civitai_client(api_key: Optional[str] = None) -> CivitaiClient:
    """Factory function to create a configured CivitaiClient."""
    return CivitaiClient(
        api_key=api_key or os.environ.get("CIVITAI_API_KEY"),
        requests_per_minute=30,
    )
