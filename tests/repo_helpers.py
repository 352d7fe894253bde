"""Git repository helpers shared by the test modules."""

import subprocess
from pathlib import Path
from typing import Dict, Iterable, Optional

TRANSFORMER_SCRIPT = '''\
import pathlib
import sys

source, output = (pathlib.Path(arg) for arg in sys.argv[1:3])
if (source / "FAIL").exists():
    sys.stderr.write("refusing to transform\\n")
    sys.exit(3)
for path in sorted(source.rglob("*.conf")):
    relative = path.relative_to(source)
    if ".git" in relative.parts:
        continue
    target = output / relative.with_suffix(".out")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(path.read_text().upper())
'''


def git(cwd: Path, *args: str) -> str:
    """Run git in cwd and return stripped stdout."""
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def expected_snapshot(files: Dict[str, str]) -> Dict[str, str]:
    """What the test transformer writes for a source tree holding `files`."""
    return {
        str(Path(name).with_suffix(".out")): content.upper()
        for name, content in files.items()
        if name.endswith(".conf")
    }


def tree_files(repo: Path, revision: str = "HEAD") -> Dict[str, str]:
    """Path -> content of every file in a commit."""
    names = git(repo, "ls-tree", "-r", "--name-only", revision).splitlines()
    return {name: git(repo, "show", f"{revision}:{name}") for name in names if name}


class SourceRepo:
    """Origin repository of the pull request under test."""

    def __init__(self, path: Path):
        self.path = path
        path.mkdir(parents=True)
        git(path, "init", "--quiet")
        git(path, "symbolic-ref", "HEAD", "refs/heads/main")
        git(path, "config", "user.name", "Config Author")
        git(path, "config", "user.email", "author@example.com")
        # Lets shallow clients fetch arbitrary commits by id
        git(path, "config", "uploadpack.allowAnySHA1InWant", "true")
        self.files: Dict[str, Dict[str, str]] = {}

    @property
    def url(self) -> str:
        return self.path.as_uri()

    def commit(
        self,
        message: str,
        files: Optional[Dict[str, str]] = None,
        remove: Iterable[str] = (),
    ) -> str:
        for name, content in (files or {}).items():
            target = self.path / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
            git(self.path, "add", name)
        for name in remove:
            git(self.path, "rm", "--quiet", name)
        git(self.path, "commit", "--quiet", "--allow-empty", "-m", message)
        sha = git(self.path, "rev-parse", "HEAD")
        self.files[sha] = self.current_files()
        return sha

    def current_files(self) -> Dict[str, str]:
        return tree_files(self.path)

    def branch(self, name: str, start: Optional[str] = None) -> None:
        args = ["checkout", "--quiet", "-b", name]
        if start:
            args.append(start)
        git(self.path, *args)

    def switch(self, name: str) -> None:
        git(self.path, "checkout", "--quiet", name)

    def merge(self, branch: str, message: str) -> str:
        git(self.path, "merge", "--quiet", "--no-ff", "-m", message, branch)
        sha = git(self.path, "rev-parse", "HEAD")
        self.files[sha] = self.current_files()
        return sha


