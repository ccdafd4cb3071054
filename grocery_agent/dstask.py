import json
import logging
import os
import re
import shutil
import subprocess

from grocery_agent.errors import ClearError, ExternalToolError, ValidationError

# Configure logger for this module
logger = logging.getLogger(__name__)

DSTASK_BIN = os.getenv("DSTASK_BIN", "dstask")
GROCERY_TAG = os.getenv("GROCERY_TAG", "+grocery")
MISE_BIN = os.getenv("MISE_BIN", "mise")
MISE_DSTASK_TOOL = os.getenv("MISE_DSTASK_TOOL", "go:github.com/naggie/dstask/cmd/dstask@latest")
MISE_SHIMS_DIR = os.getenv("MISE_SHIMS_DIR", "~/.local/share/mise/shims")
DSTASK_USE_MISE = os.getenv("DSTASK_USE_MISE")

LINE_RE = re.compile(r"^(\d+)\s+(\S+)\s+(.+?)(?:\s+\+[\w-]+)*\s*$")
TAG_RE = re.compile(r"\+[\w-]+")


def parse_json_block(output: str) -> list:
    """
    Pull the JSON array dstask prints out of its stdout.

    The array may be surrounded by banner or log lines. Capture starts at the
    first line beginning with '[' and ends, inclusive, at the first line that
    is exactly ']'. Anything unparseable is treated as no data.
    """
    block = []
    started = False
    for line in output.splitlines():
        if not started and line.strip().startswith("["):
            started = True
        if started:
            block.append(line)
            if line.strip() == "]" or (len(block) == 1 and line.strip() == "[]"):
                break

    if not block:
        logger.warning("No JSON array found in dstask output")
        return []

    try:
        items = json.loads("\n".join(block))
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse dstask output as JSON: %s", e)
        return []

    if not isinstance(items, list):
        logger.warning("dstask JSON output is not an array: %r", items)
        return []
    return items


def parse_lines(output: str) -> list:
    """Parse legacy '<id> <status> <description> +tag...' lines."""
    items = []
    for line in output.splitlines():
        m = LINE_RE.match(line.strip())
        if not m:
            continue
        items.append({
            "id": m.group(1),
            "status": m.group(2),
            "description": m.group(3),
            "tags": TAG_RE.findall(line),
        })
    return items


def parse_output(output: str) -> list:
    if any(line.strip().startswith("[") for line in output.splitlines()):
        return parse_json_block(output)
    return parse_lines(output)


def item_summary(item: dict) -> str:
    return item.get("summary") or item.get("description") or ""


def detect_mise() -> bool:
    found = shutil.which(MISE_BIN) is not None
    logger.debug("mise available: %s", found)
    return found


def _env_flag(value: str | None) -> bool | None:
    if value is None or not value.strip():
        return None
    flag = value.strip().lower()
    if flag in ("1", "true", "yes"):
        return True
    if flag in ("0", "false", "no"):
        return False
    logger.warning("Ignoring unrecognised DSTASK_USE_MISE=%r, probing for mise", value)
    return None


class DstaskClient:
    """
    Runs dstask for the grocery list.

    Every query and every new item is scoped with the grocery tag; dstask is
    trusted to honour the filter. Whether dstask is launched through mise is
    decided once, when the client is built.
    """

    def __init__(self, use_mise: bool | None = None, tag: str = GROCERY_TAG):
        if use_mise is None:
            use_mise = _env_flag(DSTASK_USE_MISE)
        if use_mise is None:
            use_mise = detect_mise()
        self.use_mise = use_mise
        self.tag = tag

    def command(self, args: list[str]) -> list[str]:
        if self.use_mise:
            return [MISE_BIN, "exec", MISE_DSTASK_TOOL, "--", DSTASK_BIN, *args]
        return [DSTASK_BIN, *args]

    def _env(self) -> dict | None:
        if not self.use_mise:
            return None
        env = dict(os.environ)
        shims = os.path.expanduser(MISE_SHIMS_DIR)
        env["PATH"] = os.pathsep.join([shims, env.get("PATH", "")])
        return env

    def run(self, args: list[str]) -> str:
        cmd = self.command(args)
        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                env=self._env(),
            )
        except OSError as e:
            logger.error("Could not start dstask: %s", e)
            raise ExternalToolError(f"dstask command failed: {e}") from e

        if result.returncode != 0:
            detail = (result.stderr or "").strip() or (result.stdout or "").strip()
            logger.error("dstask %s exited with %s: %s", args[0], result.returncode, detail)
            raise ExternalToolError(
                f"dstask command failed (exit {result.returncode}): {detail}",
                returncode=result.returncode,
                stderr=result.stderr or "",
            )

        return (result.stdout or "").rstrip()

    def list_pending(self) -> list:
        return parse_output(self.run(["next", self.tag]))

    def list_resolved(self) -> list:
        return parse_output(self.run(["show-resolved", self.tag]))

    def add_item(self, description: str) -> str:
        if not isinstance(description, str) or not description.strip():
            raise ValidationError("Item description is required")
        self.run(["add", description, self.tag])
        logger.info("Added grocery item: %s", description)
        return f'Added "{description}" to grocery list'

    def mark_done(self, item_id) -> str:
        self.run(["done", str(item_id)])
        return f"Marked item {item_id} as bought"

    def remove_item(self, item_id) -> str:
        self.run(["remove", str(item_id)])
        return f"Removed item {item_id} from grocery list"

    def clear_resolved(self) -> str:
        resolved = self.list_resolved()
        if not resolved:
            return "No bought items to clear"

        total = len(resolved)
        for removed, item in enumerate(resolved):
            try:
                item_id = item.get("id") if isinstance(item, dict) else None
                if item_id is None:
                    raise ExternalToolError(f"dstask returned a resolved item without an id: {item!r}")
                self.remove_item(item_id)
            except ExternalToolError as e:
                logger.error("Clear stopped after %d of %d items", removed, total)
                raise ClearError(
                    f"Cleared {removed} of {total} bought item(s) before failure: {e}",
                    removed=removed,
                    total=total,
                    cause=e,
                ) from e

        logger.info("Cleared %d bought grocery items", total)
        return f"Cleared {total} bought item(s)"
