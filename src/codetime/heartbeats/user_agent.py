"""Editor/plugin/platform extraction from plugin user-agent strings.

Typical inputs::

    wakatime/13.0.7 (Linux-4.15.0-91-generic-x86_64-with-glibc2.4) Python3.8.0.final.0 vscode/1.42.1 vscode-wakatime/4.0.0
    wakatime/v1.18.9 (darwin-20.5.0-arm64) go1.16.5 vim/8.2.2845 vim-wakatime/9.0.1
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_UA_PATTERN = re.compile(r"^\S+\s+\((?P<platform>[^)]*)\)\s*(?P<rest>.*)$")
_PLUGIN_SUFFIX = "-wakatime"


@dataclass(frozen=True)
class EditorInfo:
    editor: str | None = None
    plugin: str | None = None
    platform: str | None = None


def _name(component: str) -> str:
    """'vscode/1.42.1' -> 'vscode'."""
    return component.split("/", 1)[0]


def parse_user_agent(user_agent: str) -> EditorInfo:
    """Derive editor, plugin and platform. Unknown parts come back as None."""
    match = _UA_PATTERN.match(user_agent.strip())
    if match is None:
        return EditorInfo()

    platform = match.group("platform").split("-", 1)[0].strip() or None

    # Runtime markers such as "go1.16.5" carry no version separator.
    components = [c for c in match.group("rest").split() if "/" in c]
    if not components:
        return EditorInfo(platform=platform)

    plugin = _name(components[-1])
    if len(components) >= 2:
        editor = _name(components[-2])
    elif plugin.endswith(_PLUGIN_SUFFIX):
        editor = plugin[: -len(_PLUGIN_SUFFIX)]
    else:
        editor = None

    return EditorInfo(editor=editor or None, plugin=plugin or None, platform=platform)
