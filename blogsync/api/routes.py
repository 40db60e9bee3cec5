"""API route handlers for the blogsync API server."""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Mapping

from starlette.concurrency import run_in_threadpool
from starlette.responses import JSONResponse

from ..sync import (
    AssetTarget,
    ImageAttachment,
    InvalidPath,
    InvalidSlug,
    NotFound,
    PendingAsset,
    PublishPost,
    RateLimited,
    RemoteUnavailable,
    StaleBranch,
    SyncError,
    TransactionResult,
    Unauthorized,
    check_post_content,
)

if TYPE_CHECKING:
    from starlette.requests import Request

logger = logging.getLogger("blogsync.api.routes")

# Checked in order; RemoteRejected and PartialUploadFailure fall through to 502.
ERROR_STATUS = (
    (InvalidSlug, 400),
    (InvalidPath, 400),
    (Unauthorized, 401),
    (NotFound, 404),
    (StaleBranch, 409),
    (RateLimited, 429),
    (RemoteUnavailable, 503),
)


class BadRequest(ValueError):
    """Request body could not be turned into a change request."""


def status_for_error(error: SyncError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 502


def _error_response(error: SyncError) -> JSONResponse:
    headers = {}
    if isinstance(error, RateLimited) and error.retry_after is not None:
        headers["Retry-After"] = str(int(error.retry_after))
    return JSONResponse({"error": error.to_dict()}, status_code=status_for_error(error), headers=headers)


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"error": {"code": "bad_request", "message": message, "retryable": False}}, status_code=400)


def _result_response(result: TransactionResult) -> JSONResponse:
    if result.success:
        return JSONResponse(result.to_dict())
    return JSONResponse(result.to_dict(), status_code=status_for_error(result.error))


def bearer_token(request: "Request") -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, credential = header.partition(" ")
    if scheme.lower() != "bearer" or not credential.strip():
        raise Unauthorized("Missing bearer token")
    return credential.strip()


def _decode(value: Any, field_name: str) -> bytes:
    if not isinstance(value, str):
        raise BadRequest(f"'{field_name}' must be a base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise BadRequest(f"'{field_name}' is not valid base64")


def _optional_str(payload: Mapping[str, Any], key: str) -> Any:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise BadRequest(f"'{key}' must be a string")
    return value


def parse_publish_request(payload: Any) -> PublishPost:
    """Build a PublishPost from a JSON request body."""

    if not isinstance(payload, dict):
        raise BadRequest("Request body must be a JSON object")
    slug = payload.get("slug")
    body = payload.get("body")
    if not isinstance(slug, str) or not isinstance(body, str):
        raise BadRequest("'slug' and 'body' are required strings")
    front_matter = payload.get("front_matter", {})
    if front_matter is None:
        front_matter = {}
    if not isinstance(front_matter, dict):
        raise BadRequest("'front_matter' must be an object")
    try:
        check_post_content(front_matter, body)
    except ValueError as exc:
        raise BadRequest(str(exc))

    images: List[ImageAttachment] = []
    for index, item in enumerate(payload.get("images") or []):
        if not isinstance(item, dict) or not isinstance(item.get("filename"), str):
            raise BadRequest(f"images[{index}] needs a 'filename'")
        images.append(
            ImageAttachment(
                filename=item["filename"],
                content=_decode(item.get("content"), f"images[{index}].content"),
                placeholder=_optional_str(item, "placeholder"),
                cover=bool(item.get("cover", False)),
            )
        )

    return PublishPost(
        slug=slug,
        body=body,
        front_matter=front_matter,
        file_format=_optional_str(payload, "format"),
        images=images,
        original_slug=_optional_str(payload, "original_slug"),
        original_format=_optional_str(payload, "original_format"),
    )


async def _json_body(request: "Request") -> Any:
    try:
        return await request.json()
    except ValueError:
        raise BadRequest("Request body is not valid JSON")


async def health_handler(request: "Request") -> JSONResponse:
    """Health check endpoint."""
    server = request.app.state.blogsync_server
    return JSONResponse({
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "blogsync-api",
        "config": server.config_bundle.status,
    })


async def head_handler(request: "Request") -> JSONResponse:
    """Current head of the configured branch."""
    server = request.app.state.blogsync_server
    try:
        token = bearer_token(request)
        status = await run_in_threadpool(server.client().get_status, token)
    except SyncError as exc:
        return _error_response(exc)
    return JSONResponse(status)


async def commits_handler(request: "Request") -> JSONResponse:
    """Recent commits on the branch, optionally limited to one path."""
    server = request.app.state.blogsync_server
    path = request.query_params.get("path") or None
    try:
        limit = int(request.query_params.get("limit", "20"))
    except ValueError:
        return _bad_request("'limit' must be an integer")
    if not 1 <= limit <= 100:
        return _bad_request("'limit' must be between 1 and 100")

    try:
        token = bearer_token(request)
        commits = await run_in_threadpool(server.client().history, token, path, limit)
    except SyncError as exc:
        return _error_response(exc)
    return JSONResponse({"commits": [commit.to_dict() for commit in commits]})


async def post_handler(request: "Request") -> JSONResponse:
    """Load a post for editing."""
    server = request.app.state.blogsync_server
    slug = request.path_params["slug"]
    try:
        token = bearer_token(request)
        post = await run_in_threadpool(server.client().load_post, token, slug)
    except SyncError as exc:
        return _error_response(exc)
    if post is None:
        return _error_response(NotFound(f"No post named '{slug}'"))
    return JSONResponse(post.to_dict())


async def publish_handler(request: "Request") -> JSONResponse:
    """Publish or update a post with its images in one commit."""
    server = request.app.state.blogsync_server
    try:
        token = bearer_token(request)
        publish = parse_publish_request(await _json_body(request))
    except SyncError as exc:
        return _error_response(exc)
    except BadRequest as exc:
        return _bad_request(str(exc))

    result = await run_in_threadpool(server.client().publish, token, publish)
    return _result_response(result)


async def delete_post_handler(request: "Request") -> JSONResponse:
    """Delete one post and its image directory."""
    server = request.app.state.blogsync_server
    slug = request.path_params["slug"]
    try:
        token = bearer_token(request)
    except SyncError as exc:
        return _error_response(exc)

    result = await run_in_threadpool(server.client().delete_post, token, slug)
    return _result_response(result)


async def batch_delete_handler(request: "Request") -> JSONResponse:
    """Delete several posts in a single commit."""
    server = request.app.state.blogsync_server
    try:
        token = bearer_token(request)
        payload = await _json_body(request)
    except SyncError as exc:
        return _error_response(exc)
    except BadRequest as exc:
        return _bad_request(str(exc))

    slugs = payload.get("slugs") if isinstance(payload, dict) else None
    if not isinstance(slugs, list) or not all(isinstance(slug, str) for slug in slugs):
        return _bad_request("'slugs' must be a list of strings")

    result = await run_in_threadpool(server.client().delete_posts, token, slugs)
    return _result_response(result)


async def site_handler(request: "Request") -> JSONResponse:
    """Current site configuration."""
    server = request.app.state.blogsync_server
    try:
        token = bearer_token(request)
        settings = await run_in_threadpool(server.client().load_site_settings, token)
    except SyncError as exc:
        return _error_response(exc)
    except ValueError as exc:
        return JSONResponse({"error": {"code": "invalid_site_config", "message": str(exc)}}, status_code=502)
    return JSONResponse(settings.to_dict())


def _apply_site_changes(settings: Any, payload: Mapping[str, Any]) -> List[PendingAsset]:
    setters: Dict[str, Any] = {
        "title": settings.set_title,
        "description": settings.set_description,
        "author": settings.set_author,
    }
    for key, setter in setters.items():
        if key in payload:
            if not isinstance(payload[key], str):
                raise BadRequest(f"'{key}' must be a string")
            setter(payload[key])

    assets: List[PendingAsset] = []
    for key, target in (("favicon", AssetTarget.FAVICON), ("avatar", AssetTarget.AVATAR)):
        if key in payload:
            assets.append(PendingAsset(target, _decode(payload[key], key)))
    return assets


async def site_update_handler(request: "Request") -> JSONResponse:
    """Update site text fields and replace favicon or avatar in one commit."""
    server = request.app.state.blogsync_server
    try:
        token = bearer_token(request)
        payload = await _json_body(request)
        if not isinstance(payload, dict):
            raise BadRequest("Request body must be a JSON object")
        client = server.client()
        settings = await run_in_threadpool(client.load_site_settings, token)
        assets = _apply_site_changes(settings, payload)
    except SyncError as exc:
        return _error_response(exc)
    except ValueError as exc:
        return _bad_request(str(exc))

    result = await run_in_threadpool(client.update_site, token, settings, assets)
    return _result_response(result)


__all__ = [
    "health_handler",
    "head_handler",
    "commits_handler",
    "post_handler",
    "publish_handler",
    "delete_post_handler",
    "batch_delete_handler",
    "site_handler",
    "site_update_handler",
    "status_for_error",
    "bearer_token",
    "parse_publish_request",
]
