#!/usr/bin/env python3
"""
Small API client for the FairList backend.

When the backend cannot be reached (connection refused or timeout) the client
switches to static mode and answers from the bundled mock data instead, so a
demo keeps working with the server down. HTTP errors from a reachable server
are raised as usual.

Usage:
    python demo_client.py --base-url http://localhost:8000 --email agent@example.com --password password123
"""

import argparse
import json
import logging
from typing import Any, Dict, Optional

import requests

from services.compliance import check_compliance
from services.copywriter import ListingDraft
from services.demo_data import DEMO_WARNING, MOCK_USER, demo_listing_copy, mock_listings

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"
REQUEST_TIMEOUT = 10

class FairListClient:
    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = REQUEST_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.static_mode = False

    def _request(self, method: str, path: str, **kwargs) -> Optional[Any]:
        """JSON body of the response, or None once the client is in static mode."""
        if self.static_mode:
            return None
        try:
            response = self.session.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            logger.warning(f"Backend unreachable ({e.__class__.__name__}); switching to static mode")
            self.static_mode = True
            return None
        response.raise_for_status()
        if response.headers.get("content-type", "").startswith("application/json"):
            return response.json()
        return response.text

    def health(self) -> Dict[str, Any]:
        data = self._request("GET", "/health")
        if data is None:
            return {"status": "static", "demo_mode": True}
        return data

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        if data is None:
            return dict(MOCK_USER)
        return data

    def me(self) -> Dict[str, Any]:
        data = self._request("GET", "/api/auth/me")
        if data is None:
            return {"user": dict(MOCK_USER), "subscription": None}
        return data

    def list_listings(self, **filters) -> Dict[str, Any]:
        data = self._request("GET", "/api/listings", params={k: v for k, v in filters.items() if v is not None})
        if data is None:
            listings = mock_listings()
            return {
                "listings": listings,
                "pagination": {"total": len(listings), "page": 1, "limit": len(listings), "pages": 1},
            }
        return data

    def get_listing(self, listing_id: int) -> Optional[Dict[str, Any]]:
        data = self._request("GET", f"/api/listings/{listing_id}")
        if data is None:
            return next((listing for listing in mock_listings() if listing["id"] == listing_id), None)
        return data

    def generate_listing(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        data = self._request("POST", "/api/listings/generate", json=payload)
        if data is None:
            draft = ListingDraft(
                property_type=payload["property_type"],
                bedrooms=payload["bedrooms"],
                bathrooms=payload["bathrooms"],
                square_feet=payload.get("square_feet"),
                price=payload.get("price"),
                location=payload.get("location", ""),
                features=payload.get("features") or [],
                additional_notes=payload.get("additional_notes", ""),
                title=payload.get("title"),
            )
            copy = demo_listing_copy(draft, include_video=bool(payload.get("include_video_script")))
            return {"listing": None, "generated": copy.to_dict(), "warnings": [DEMO_WARNING]}
        return data

    def check_compliance(self, text: str, use_ai: bool = False) -> Dict[str, Any]:
        data = self._request("POST", "/api/compliance/check", json={"text": text, "use_ai": use_ai})
        if data is None:
            # The term linter runs locally
            result = check_compliance(text)
            result["ai_issues"] = [] if use_ai else None
            result["warnings"] = [DEMO_WARNING] if use_ai else []
            return result
        return data

    def demo_listings(self) -> Dict[str, Any]:
        data = self._request("GET", "/api/demo/listings")
        if data is None:
            return {"listings": mock_listings()}
        return data

def main(argv=None):
    parser = argparse.ArgumentParser(description="Exercise the FairList API")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL)
    parser.add_argument("--email", default="agent@example.com")
    parser.add_argument("--password", default="password123")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    client = FairListClient(args.base_url)

    print(f"Health: {client.health()}")
    user = client.login(args.email, args.password)
    print(f"Logged in as: {user.get('email')}")

    result = client.generate_listing({
        "property_type": "house",
        "bedrooms": 3,
        "bathrooms": 2,
        "square_feet": 1850,
        "location": "Portland, OR",
        "features": ["Hardwood floors", "Updated kitchen", "Fenced backyard"],
    })
    print(json.dumps(result["generated"], indent=2, ensure_ascii=False))

    listings = client.list_listings(limit=5)
    print(f"{listings['pagination']['total']} listing(s); static mode: {client.static_mode}")

if __name__ == "__main__":
    main()
