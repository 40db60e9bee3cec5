"""Typed view of the site configuration file.

The site configuration is a YAML document owned by the static site. Only the
fields the editor changes are modelled; everything else is carried through
untouched so a round trip never loses keys the engine does not know about.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

import yaml

SOCIAL_PRESETS: Dict[str, str] = {
    "ri:github-line": "Github",
    "ri:twitter-line": "Twitter (X)",
    "ri:bilibili-line": "Bilibili",
    "ri:mail-line": "Email",
    "ri:telegram-line": "Telegram",
    "ri:qq-line": "QQ",
    "ri:wechat-fill": "WeChat",
    "ri:tiktok-line": "Douyin",
    "ri:rss-fill": "RSS",
    "ri:weibo-fill": "Weibo",
    "ri:zhihu-line": "Zhihu",
    "ri:link": "Other",
}


class AssetTarget(str, Enum):
    """Site assets that can be replaced from the editor."""
    FAVICON = "site.favicon"
    AVATAR = "user.avatar"

    @property
    def filename(self) -> str:
        return "favicon.ico" if self is AssetTarget.FAVICON else "profile.png"


@dataclass
class SocialLink:
    href: str
    title: str
    aria_label: str
    svg: str = "ri:link"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SocialLink":
        title = str(data.get("title", ""))
        return cls(
            href=str(data.get("href", "")),
            title=title,
            aria_label=str(data.get("ariaLabel", title)),
            svg=str(data.get("svg", "ri:link")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "href": self.href,
            "title": self.title,
            "ariaLabel": self.aria_label,
            "svg": self.svg,
        }


@dataclass
class SiteSettings:
    """Editable subset of the site configuration plus the untouched remainder."""

    title: Optional[str] = None
    description: Optional[str] = None
    favicon: Optional[str] = None
    author: Optional[str] = None
    avatar: Optional[str] = None
    social: List[SocialLink] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SiteSettings":
        data = dict(data or {})
        site = data.get("site") or {}
        user = data.get("user") or {}
        sidebar = user.get("sidebar") or {}
        return cls(
            title=site.get("title"),
            description=site.get("description"),
            favicon=site.get("favicon"),
            author=user.get("name"),
            avatar=user.get("avatar"),
            social=[SocialLink.from_dict(item) for item in sidebar.get("social") or []],
            raw=deepcopy(data),
        )

    @classmethod
    def from_yaml(cls, text: str) -> "SiteSettings":
        data = yaml.safe_load(text) if text.strip() else {}
        if not isinstance(data, dict):
            raise ValueError("Site configuration must be a YAML mapping")
        return cls.from_dict(data)

    def copy(self) -> "SiteSettings":
        return deepcopy(self)

    # -- named setters --------------------------------------------------------

    def set_title(self, title: str) -> None:
        title = title.strip()
        if not title:
            raise ValueError("Site title cannot be empty")
        self.title = title

    def set_description(self, description: str) -> None:
        self.description = description.strip()

    def set_author(self, name: str) -> None:
        name = name.strip()
        if not name:
            raise ValueError("Author name cannot be empty")
        self.author = name

    def set_favicon(self, public_path: str) -> None:
        self.favicon = _public_path(public_path)

    def set_avatar(self, public_path: str) -> None:
        self.avatar = _public_path(public_path)

    def set_asset(self, target: AssetTarget, public_path: str) -> None:
        if target is AssetTarget.FAVICON:
            self.set_favicon(public_path)
        else:
            self.set_avatar(public_path)

    def add_social_link(self, href: str, svg: str = "ri:link", title: Optional[str] = None) -> SocialLink:
        label = title or SOCIAL_PRESETS.get(svg, "New Link")
        link = SocialLink(href=href.strip(), title=label, aria_label=label, svg=svg)
        self.social.append(link)
        return link

    def set_social_icon(self, index: int, svg: str) -> None:
        link = self._social_at(index)
        link.svg = svg
        preset = SOCIAL_PRESETS.get(svg)
        if preset:
            link.title = preset
            link.aria_label = preset

    def remove_social_link(self, index: int) -> SocialLink:
        self._social_at(index)
        return self.social.pop(index)

    def move_social_link(self, index: int, direction: str) -> None:
        self._social_at(index)
        if direction == "up" and index > 0:
            target = index - 1
        elif direction == "down" and index < len(self.social) - 1:
            target = index + 1
        elif direction in ("up", "down"):
            return
        else:
            raise ValueError(f"Unknown direction '{direction}'")
        self.social[index], self.social[target] = self.social[target], self.social[index]

    def _social_at(self, index: int) -> SocialLink:
        if not 0 <= index < len(self.social):
            raise IndexError(f"No social link at position {index}")
        return self.social[index]

    # -- serialization --------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        data = deepcopy(self.raw)
        if _has_any(self.title, self.description, self.favicon):
            site = data["site"] = data.get("site") or {}
            _put(site, "title", self.title)
            _put(site, "description", self.description)
            _put(site, "favicon", self.favicon)

        user = data.get("user") or {}
        sidebar = user.get("sidebar") or {}
        if _has_any(self.author, self.avatar) or self.social or "social" in sidebar:
            _put(user, "name", self.author)
            _put(user, "avatar", self.avatar)
            if self.social or "social" in sidebar:
                sidebar["social"] = [link.to_dict() for link in self.social]
                user["sidebar"] = sidebar
            data["user"] = user
        return data

    def to_yaml(self) -> str:
        return yaml.safe_dump(
            self.to_dict(),
            allow_unicode=True,
            sort_keys=False,
            default_flow_style=False,
        )


def _public_path(value: str) -> str:
    value = value.strip()
    if not value.startswith("/"):
        raise ValueError(f"Asset path '{value}' must be a site-absolute path starting with '/'")
    return value


def _has_any(*values: Optional[str]) -> bool:
    return any(v is not None for v in values)


def _put(target: Dict[str, Any], key: str, value: Optional[str]) -> None:
    if value is not None:
        target[key] = value


__all__ = ["SiteSettings", "SocialLink", "AssetTarget", "SOCIAL_PRESETS"]
