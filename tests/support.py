"""Shared fixtures: throwaway bare remotes and site configs pointing at them."""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import Dict, Optional

PROJECT_ROOT = Path(__file__).resolve().parent.parent
API_CODE_PATH = PROJECT_ROOT / "api-code"
if str(API_CODE_PATH) not in sys.path:
    sys.path.insert(0, str(API_CODE_PATH))

from models import SiteConfig  # noqa: E402


GIT_IDENTITY = {
    "GIT_AUTHOR_NAME": "Peer Author",
    "GIT_AUTHOR_EMAIL": "peer@example.com",
    "GIT_COMMITTER_NAME": "Peer Author",
    "GIT_COMMITTER_EMAIL": "peer@example.com",
    "GIT_TERMINAL_PROMPT": "0",
}


def git(cwd: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        env={**os.environ, **GIT_IDENTITY},
        capture_output=True,
        text=True,
        check=True,
    )
    return completed.stdout.strip()


class RemoteFixture:
    """A bare origin with a main branch, plus a peer clone acting as another contributor."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.bare = root / "remote.git"
        self.peer = root / "peer"
        git(root, "init", "--quiet", "--bare", str(self.bare))
        git(self.bare, "symbolic-ref", "HEAD", "refs/heads/main")
        git(root, "init", "--quiet", str(self.peer))
        git(self.peer, "symbolic-ref", "HEAD", "refs/heads/main")
        git(self.peer, "remote", "add", "origin", str(self.bare))
        self.peer_commit({"index.md": "# Hello\n"}, "Initial commit")

    def peer_commit(self, files: Dict[str, str], message: str) -> str:
        for name, content in files.items():
            path = self.peer / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        git(self.peer, "add", "-A")
        git(self.peer, "commit", "--quiet", "-m", message)
        git(self.peer, "push", "--quiet", "origin", "HEAD:main")
        return git(self.peer, "rev-parse", "HEAD")

    def remote_head(self) -> str:
        return git(self.bare, "rev-parse", "main")

    def remote_subjects(self) -> list:
        return git(self.bare, "log", "--pretty=format:%s", "main").splitlines()

    def remote_file(self, name: str) -> str:
        return git(self.bare, "show", f"main:{name}")

    def make_site(self, site_id: str = "docs", work_dir: Optional[Path] = None, **overrides) -> SiteConfig:
        data = {
            "id": site_id,
            "name": "Docs",
            "github_repository_url": str(self.bare),
            "github_pat": "",
            "local_path": str(work_dir or self.root / "work" / site_id),
        }
        data.update(overrides)
        return SiteConfig(**data)
