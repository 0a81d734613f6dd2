"""Player profiles and their JSON store.

Profiles only change at the edges of a session: read when a game starts,
updated from the :class:`~spacemath.events.SessionSummary` when it ends.
Broken files never stop the game; they are logged and replaced by defaults.
"""

from __future__ import annotations

import json
import logging
import secrets
import string
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .events import SessionSummary
from .evolution import EvolutionChange, detect_evolution
from .problems import Operation

logger = logging.getLogger(__name__)

DEFAULT_AVATAR = "🧑‍🚀"
INDEX_FILE = "profiles.json"
PROFILE_PREFIX = "profile_"
ID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass
class OperationStats:
    attempts: int = 0
    correct: int = 0


def _empty_operation_stats() -> Dict[str, OperationStats]:
    return {op.key: OperationStats() for op in Operation}


@dataclass
class ProfileProgress:
    xp: int = 0
    total_problems: int = 0
    correct_answers: int = 0
    current_streak: int = 0
    best_streak: int = 0
    evolution_stage: int = 1
    operation_stats: Dict[str, OperationStats] = field(default_factory=_empty_operation_stats)


@dataclass
class ProfileSettings:
    difficulty: int = 1
    game_mode: str = "shoot"
    sound_enabled: bool = True
    music_enabled: bool = True


@dataclass
class Profile:
    id: str
    name: str
    avatar: str = DEFAULT_AVATAR
    created_at: float = field(default_factory=time.time)
    last_played: float = field(default_factory=time.time)
    settings: ProfileSettings = field(default_factory=ProfileSettings)
    progress: ProfileProgress = field(default_factory=ProfileProgress)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        """Build a profile from stored JSON, filling any missing keys with defaults."""
        settings = ProfileSettings(**_typed(ProfileSettings, data.get("settings") or {}))
        raw_progress = dict(data.get("progress") or {})
        raw_stats = raw_progress.pop("operation_stats", None) or {}
        progress = ProfileProgress(**_typed(ProfileProgress, raw_progress))
        for key, stats in raw_stats.items():
            if key in progress.operation_stats and isinstance(stats, dict):
                progress.operation_stats[key] = OperationStats(**_typed(OperationStats, stats))
        now = time.time()
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or "Player"),
            avatar=data.get("avatar") or DEFAULT_AVATAR,
            created_at=float(data.get("created_at", now)),
            last_played=float(data.get("last_played", now)),
            settings=settings,
            progress=progress,
        )


def _known(klass, raw: Dict[str, Any]) -> Dict[str, Any]:
    names = klass.__dataclass_fields__.keys()
    return {k: v for k, v in raw.items() if k in names and k != "operation_stats"}


_CASTS = {"int": int, "float": float, "str": str, "bool": bool}


def _typed(klass, raw: Dict[str, Any]) -> Dict[str, Any]:
    """Known fields of ``raw`` cast to their declared types.

    A value that cannot be cast (``None`` or ``"abc"`` for an int) raises
    ``TypeError``/``ValueError``, which :meth:`ProfileStore.load_profile` turns
    into a default profile.
    """
    values = _known(klass, raw)
    for name, value in values.items():
        cast = _CASTS.get(klass.__dataclass_fields__[name].type)
        if cast is not None:
            values[name] = cast(value)
    return values


def create_default_profile(profile_id: str, name: str, avatar: str = DEFAULT_AVATAR) -> Profile:
    return Profile(id=profile_id, name=name, avatar=avatar)


def generate_id(length: int = 7) -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


def apply_session_summary(profile: Profile, summary: SessionSummary) -> Optional[EvolutionChange]:
    """Merge a finished session into ``profile``; return the evolution it caused, if any."""
    progress = profile.progress
    stage_before = progress.evolution_stage
    progress.xp += summary.xp_earned
    progress.total_problems += summary.attempts
    progress.correct_answers += summary.correct_count
    progress.best_streak = max(progress.best_streak, summary.best_streak)
    # sessions only end on a miss
    progress.current_streak = 0
    for key, stats in summary.operation_stats.items():
        merged = progress.operation_stats.setdefault(key, OperationStats())
        merged.attempts += stats.get("attempts", 0)
        merged.correct += stats.get("correct", 0)

    change = detect_evolution(stage_before, progress.xp)
    if change is not None:
        progress.evolution_stage = change.to_stage
        logger.info("profile %s evolved: stage %d -> %d", profile.id, change.from_stage, change.to_stage)
    return change


class ProfileStore:
    """One JSON file per profile plus an index, all under ``root``."""

    def __init__(self, root):
        self.root = Path(root)

    # ---------- low level ----------
    def _profile_path(self, profile_id: str) -> Path:
        return self.root / f"{PROFILE_PREFIX}{profile_id}.json"

    def _read_json(self, path: Path):
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write_json(self, path: Path, data) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        tmp.replace(path)

    # ---------- index ----------
    def load_index(self) -> Dict[str, Any]:
        path = self.root / INDEX_FILE
        empty = {"profiles": [], "active_profile": None}
        if not path.exists():
            return empty
        try:
            data = self._read_json(path)
        except (OSError, ValueError) as e:
            logger.warning("unreadable profile index %s: %s", path, e)
            return empty
        if not isinstance(data, dict) or not isinstance(data.get("profiles"), list):
            logger.warning("malformed profile index %s", path)
            return empty
        return {"profiles": [str(p) for p in data["profiles"]], "active_profile": data.get("active_profile")}

    def save_index(self, index: Dict[str, Any]) -> None:
        self._write_json(self.root / INDEX_FILE, index)

    # ---------- profiles ----------
    def load_profile(self, profile_id: str) -> Optional[Profile]:
        path = self._profile_path(profile_id)
        if not path.exists():
            return None
        try:
            data = self._read_json(path)
            if not isinstance(data, dict):
                raise ValueError("profile is not an object")
            data.setdefault("id", profile_id)
            return Profile.from_dict(data)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("recovering profile %s from defaults: %s", profile_id, e)
            return create_default_profile(profile_id, "Player")

    def save_profile(self, profile: Profile) -> None:
        profile.last_played = time.time()
        self._write_json(self._profile_path(profile.id), profile.to_dict())

    def list_profiles(self) -> List[Profile]:
        profiles = []
        for pid in self.load_index()["profiles"]:
            profile = self.load_profile(pid)
            if profile is not None:
                profiles.append(profile)
        return profiles

    def create_profile(self, name: str, avatar: str = DEFAULT_AVATAR) -> Profile:
        profile = create_default_profile(generate_id(), name, avatar)
        self.save_profile(profile)
        index = self.load_index()
        index["profiles"].append(profile.id)
        if not index["active_profile"]:
            index["active_profile"] = profile.id
        self.save_index(index)
        logger.info("created profile %s (%s)", profile.id, name)
        return profile

    def delete_profile(self, profile_id: str) -> None:
        path = self._profile_path(profile_id)
        if path.exists():
            path.unlink()
        index = self.load_index()
        index["profiles"] = [p for p in index["profiles"] if p != profile_id]
        if index["active_profile"] == profile_id:
            index["active_profile"] = index["profiles"][0] if index["profiles"] else None
        self.save_index(index)

    def set_active_profile(self, profile_id: str) -> None:
        index = self.load_index()
        index["active_profile"] = profile_id
        self.save_index(index)

    def active_profile(self) -> Optional[Profile]:
        active = self.load_index()["active_profile"]
        if not active:
            return None
        return self.load_profile(active)
