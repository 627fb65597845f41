"""
TICK.md document handling: parsing and canonical serialization.

The document is Markdown with three parts:

    ---
    <YAML frontmatter: project metadata>
    ---

    ## Agents
    <Markdown table, one row per agent>

    ---

    ## Tasks

    ### TASK-001 · Title
    ```yaml
    <YAML mapping: task fields and history>
    ```

    > description lines

serialize_tick_file() output is canonical: parse_tick_file() of it yields an
equal model and serializing that model again yields identical bytes.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

import yaml

from tickmd.constants import (
    DEFAULT_ID_PREFIX,
    DEFAULT_SCHEMA_VERSION,
    DEFAULT_WORKFLOW,
)
from tickmd.core.exceptions import ParseError
from tickmd.core.models import (
    Agent,
    ProjectMeta,
    Task,
    TickFile,
    VALID_AGENT_STATUSES,
    VALID_AGENT_TYPES,
    VALID_TRUST_LEVELS,
    _normalize_choice,
    normalize_status,
)

_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


def _without_timestamps(resolvers: Dict[str, list]) -> Dict[str, list]:
    return {
        key: [(tag, regexp) for tag, regexp in entries if tag != _TIMESTAMP_TAG]
        for key, entries in resolvers.items()
    }


class _TickLoader(yaml.SafeLoader):
    """SafeLoader that keeps ISO dates and timestamps as plain strings."""


class _TickDumper(yaml.SafeDumper):
    """SafeDumper resolving scalars the same way as _TickLoader."""


_TickLoader.yaml_implicit_resolvers = _without_timestamps(
    yaml.SafeLoader.yaml_implicit_resolvers
)
_TickDumper.yaml_implicit_resolvers = _without_timestamps(
    yaml.SafeDumper.yaml_implicit_resolvers
)

FRONTMATTER_RE = re.compile(r"^---[ \t]*\n(.*?)\n---[ \t]*(?:\n|$)(.*)", re.DOTALL)
# Any level-3 heading that starts with a task ID; the remainder must be "· Title"
TASK_HEADER_RE = re.compile(
    r"^###[ \t]+([A-Za-z][A-Za-z0-9_]*-\d+)\b([^\n]*)$", re.MULTILINE
)
TASK_TITLE_RE = re.compile(r"^[ \t]*·[ \t]*(\S.*?)[ \t]*$")
HEADING_RE = re.compile(r"^#{1,6}[ \t]")
YAML_BLOCK_RE = re.compile(r"^```yaml[ \t]*\n(.*?)\n?^```[ \t]*$", re.MULTILINE | re.DOTALL)
AGENTS_HEADER_RE = re.compile(r"^##[ \t]+Agents[ \t]*$", re.MULTILINE | re.IGNORECASE)

AGENT_COLUMNS = [
    "Agent",
    "Type",
    "Role",
    "Status",
    "Working On",
    "Last Active",
    "Trust Level",
]
YAML_WIDTH = 1000


def load_yaml(text: str) -> Any:
    """Load YAML with timestamps kept as strings."""
    return yaml.load(text, Loader=_TickLoader)


def dump_yaml(data: Any, flow_style: Optional[bool] = False) -> str:
    """Dump YAML deterministically, preserving mapping insertion order."""
    return yaml.dump(
        data,
        Dumper=_TickDumper,
        default_flow_style=flow_style,
        sort_keys=False,
        allow_unicode=True,
        width=YAML_WIDTH,
    )


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_tick_file(content: str) -> TickFile:
    """Parse a TICK.md document.

    Args:
        content: Full document text.

    Returns:
        Parsed TickFile.

    Raises:
        ParseError: If any region is unparseable. The error lists every
            problem found, not only the first.
    """
    tick_file, errors = parse_tick_file_with_errors(content)
    if errors:
        first = errors[0]
        problems = [e.message for e in errors]
        raise ParseError(
            f"Failed to parse TICK.md ({len(problems)} problem(s)): " + "; ".join(problems),
            region=first.region,
            problems=problems,
            task_id=first.task_id,
        )
    return tick_file


def parse_tick_file_with_errors(content: str) -> Tuple[TickFile, List[ParseError]]:
    """Parse a TICK.md document, collecting problems instead of raising.

    Unparseable tasks are kept as minimal tasks built from their header and
    duplicate task IDs keep their first occurrence, so nothing disappears
    from the returned model. Invalid task fields fall back to defaults and
    are reported as recoverable errors.

    Args:
        content: Full document text.

    Returns:
        Tuple of (best-effort TickFile, list of ParseError).
    """
    errors: List[ParseError] = []
    content = content.replace("\r\n", "\n")

    frontmatter, body = _split_frontmatter(content, errors)
    meta = _parse_meta(frontmatter, errors)
    agents = _parse_agents(body, errors)
    tasks = _parse_tasks(body, errors)

    return TickFile(meta=meta, agents=agents, tasks=tasks), errors


def _split_frontmatter(content: str, errors: List[ParseError]) -> Tuple[Dict[str, Any], str]:
    match = FRONTMATTER_RE.match(content)
    if not match:
        errors.append(
            ParseError(
                "Missing frontmatter: document must start with a --- delimited YAML block",
                region="frontmatter",
            )
        )
        return {}, content

    yaml_text = match.group(1)
    body = match.group(2)

    try:
        data = load_yaml(yaml_text) or {}
    except yaml.YAMLError as e:
        errors.append(ParseError(f"Invalid YAML in frontmatter: {e}", region="frontmatter"))
        return {}, body

    if not isinstance(data, dict):
        errors.append(
            ParseError("Frontmatter must be a YAML mapping", region="frontmatter")
        )
        return {}, body

    return data, body


def _parse_meta(data: Dict[str, Any], errors: List[ParseError]) -> ProjectMeta:
    workflow = data.get("default_workflow", list(DEFAULT_WORKFLOW))
    if not isinstance(workflow, list):
        errors.append(
            ParseError(
                "Frontmatter default_workflow must be a list",
                region="frontmatter",
                recoverable=True,
            )
        )
        workflow = list(DEFAULT_WORKFLOW)
    else:
        normalized = []
        for status in workflow:
            try:
                normalized.append(normalize_status(status))
            except ValueError as e:
                errors.append(
                    ParseError(f"Frontmatter default_workflow: {e}", region="frontmatter", recoverable=True)
                )
        workflow = normalized

    next_id = data.get("next_id", 1)
    if isinstance(next_id, bool) or not isinstance(next_id, int):
        try:
            next_id = int(str(next_id))
        except ValueError:
            errors.append(
                ParseError(
                    f"Frontmatter next_id must be an integer, got: {next_id!r}",
                    region="frontmatter",
                    recoverable=True,
                )
            )
            next_id = 1

    title = data.get("title")
    return ProjectMeta(
        project=str(data.get("project") or ""),
        title=str(title) if title else None,
        schema_version=str(data.get("schema_version") or DEFAULT_SCHEMA_VERSION),
        created=str(data.get("created") or ""),
        updated=str(data.get("updated") or ""),
        default_workflow=workflow,
        id_prefix=str(data.get("id_prefix") or DEFAULT_ID_PREFIX),
        next_id=next_id,
    )


def _section_lines(body: str, start: int) -> List[str]:
    """Lines after a heading, up to the next heading or --- separator."""
    lines = []
    for line in body[start:].split("\n")[1:]:
        stripped = line.strip()
        if stripped == "---" or stripped.startswith("## ") or stripped.startswith("### "):
            break
        lines.append(line)
    return lines


def _split_row(line: str) -> List[str]:
    inner = line.strip()
    if inner.startswith("|"):
        inner = inner[1:]
    if inner.endswith("|"):
        inner = inner[:-1]
    return [cell.strip() for cell in inner.split("|")]


def _parse_agents(body: str, errors: List[ParseError]) -> List[Agent]:
    match = AGENTS_HEADER_RE.search(body)
    if not match:
        return []

    agents: List[Agent] = []
    seen_header = False
    for line in _section_lines(body, match.start()):
        stripped = line.strip()
        if not stripped.startswith("|"):
            continue
        cells = _split_row(stripped)
        if all(set(cell) <= set("-: ") for cell in cells):
            continue
        if not seen_header and cells and cells[0] == AGENT_COLUMNS[0]:
            seen_header = True
            continue

        if len(cells) < 6:
            errors.append(
                ParseError(
                    f"Malformed agents row (expected {len(AGENT_COLUMNS)} columns): {stripped}",
                    region="agents",
                )
            )
            continue

        name, agent_type, roles, status, working_on, last_active = cells[:6]
        trust_level = cells[6] if len(cells) > 6 else "restricted"
        try:
            agent = Agent(
                name=name,
                type=_normalize_choice(agent_type, VALID_AGENT_TYPES, "agent type"),
                roles=[r.strip() for r in roles.split(",") if r.strip()],
                status=_normalize_choice(status, VALID_AGENT_STATUSES, "agent status"),
                working_on=None if working_on in ("", "-") else working_on,
                last_active=last_active,
                trust_level=_normalize_choice(trust_level, VALID_TRUST_LEVELS, "trust level"),
            )
        except ValueError as e:
            errors.append(ParseError(f"Agent {name}: {e}", region="agents"))
            continue
        agents.append(agent)

    return agents


def _parse_description(text: str) -> str:
    lines = []
    for line in text.split("\n"):
        if line.strip() == "---" or HEADING_RE.match(line):
            break
        if line.startswith(">"):
            line = line[1:]
            if line.startswith(" "):
                line = line[1:]
        lines.append(line.rstrip())
    return "\n".join(lines).strip()


def _parse_tasks(body: str, errors: List[ParseError]) -> List[Task]:
    tasks: List[Task] = []
    seen_ids = set()
    headers = list(TASK_HEADER_RE.finditer(body))

    for index, header in enumerate(headers):
        header_id = header.group(1)
        end = headers[index + 1].start() if index + 1 < len(headers) else len(body)
        block = body[header.end():end]
        region = f"task {header_id}"

        title_match = TASK_TITLE_RE.match(header.group(2))
        if title_match:
            title = title_match.group(1)
        else:
            title = header.group(2).strip(" \t:·-") or header_id
            errors.append(
                ParseError(
                    f"Malformed task header for {header_id}: expected "
                    f"'### {header_id} · Title', got '{header.group(0).strip()}'",
                    region=region,
                    task_id=header_id,
                    recoverable=True,
                )
            )

        task = _parse_task_block(header_id, title, block, region, errors)

        if task.id in seen_ids:
            errors.append(
                ParseError(f"Duplicate task ID: {task.id}", region=region, task_id=task.id)
            )
            continue
        seen_ids.add(task.id)
        tasks.append(task)

    return tasks


def _parse_task_block(
    header_id: str, title: str, block: str, region: str, errors: List[ParseError]
) -> Task:
    yaml_match = YAML_BLOCK_RE.search(block)
    if not yaml_match:
        errors.append(
            ParseError(f"No YAML block found for {header_id}", region=region, task_id=header_id)
        )
        return Task(id=header_id, title=title)

    description = _parse_description(block[yaml_match.end():])

    try:
        data = load_yaml(yaml_match.group(1)) or {}
    except yaml.YAMLError as e:
        errors.append(
            ParseError(f"Invalid YAML for {header_id}: {e}", region=region, task_id=header_id)
        )
        return Task(id=header_id, title=title, description=description)

    if not isinstance(data, dict):
        errors.append(
            ParseError(f"YAML block for {header_id} must be a mapping", region=region, task_id=header_id)
        )
        return Task(id=header_id, title=title, description=description)

    yaml_id = str(data.get("id") or header_id)
    if yaml_id != header_id:
        errors.append(
            ParseError(
                f"Task ID mismatch: header '{header_id}' vs YAML '{yaml_id}'",
                region=region,
                task_id=header_id,
                recoverable=True,
            )
        )
    data = dict(data, id=header_id)

    try:
        return Task.from_dict(data, title=title, description=description)
    except ValueError:
        return _salvage_task(header_id, title, description, data, region, errors)


def _salvage_task(
    header_id: str,
    title: str,
    description: str,
    data: Dict[str, Any],
    region: str,
    errors: List[ParseError],
) -> Task:
    """Rebuild a task keeping every field that parses on its own.

    Invalid fields fall back to their defaults (status backlog, priority
    medium, empty lists); invalid history or deliverable entries are
    dropped one by one.
    """
    cleaned: Dict[str, Any] = {"id": header_id}
    for key, value in data.items():
        if key == "id":
            continue
        if key in ("history", "deliverables") and isinstance(value, list):
            kept = []
            for item in value:
                try:
                    Task.from_dict({key: [item]}, title=title)
                except ValueError as e:
                    errors.append(_field_error(header_id, region, e))
                    continue
                kept.append(item)
            cleaned[key] = kept
            continue
        try:
            Task.from_dict({key: value}, title=title)
        except ValueError as e:
            errors.append(_field_error(header_id, region, e))
            continue
        cleaned[key] = value
    return Task.from_dict(cleaned, title=title, description=description)


def _field_error(header_id: str, region: str, error: ValueError) -> ParseError:
    return ParseError(
        f"Task {header_id}: {error}", region=region, task_id=header_id, recoverable=True
    )


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def serialize_tick_file(tick_file: TickFile) -> str:
    """Serialize a TickFile to its canonical TICK.md text.

    Pure and deterministic: fields in fixed order, empty optional fields
    omitted.
    """
    lines: List[str] = ["---"]
    lines.append(dump_yaml(_meta_to_dict(tick_file.meta), flow_style=None).rstrip("\n"))
    lines.append("---")
    lines.append("")

    if tick_file.agents:
        lines.append("## Agents")
        lines.append("")
        lines.append("| " + " | ".join(AGENT_COLUMNS) + " |")
        lines.append("|" + "|".join("-" * (len(c) + 2) for c in AGENT_COLUMNS) + "|")
        for agent in tick_file.agents:
            cells = [
                agent.name,
                agent.type,
                ", ".join(agent.roles),
                agent.status,
                agent.working_on or "-",
                agent.last_active,
                agent.trust_level,
            ]
            lines.append("| " + " | ".join(cells) + " |")
        lines.append("")
        lines.append("---")
        lines.append("")

    if tick_file.tasks:
        lines.append("## Tasks")
        lines.append("")
        for task in tick_file.tasks:
            lines.extend(_task_lines(task))

    return "\n".join(lines).rstrip("\n") + "\n"


def _meta_to_dict(meta: ProjectMeta) -> Dict[str, Any]:
    result: Dict[str, Any] = {"project": meta.project}
    if meta.title:
        result["title"] = meta.title
    result["schema_version"] = meta.schema_version
    result["created"] = meta.created
    result["updated"] = meta.updated
    result["default_workflow"] = list(meta.default_workflow)
    result["id_prefix"] = meta.id_prefix
    result["next_id"] = meta.next_id
    return result


def _task_lines(task: Task) -> List[str]:
    lines = [f"### {task.id} · {task.title}", ""]
    lines.append("```yaml")
    lines.append(dump_yaml(task.to_dict()).rstrip("\n"))
    lines.append("```")
    lines.append("")
    if task.description:
        for line in task.description.split("\n"):
            lines.append(f"> {line}" if line else ">")
        lines.append("")
    return lines


def create_tick_file(
    project: str,
    now: str,
    id_prefix: str = DEFAULT_ID_PREFIX,
    title: Optional[str] = None,
) -> TickFile:
    """Build an empty document model for a new project."""
    return TickFile(
        meta=ProjectMeta(
            project=project,
            title=title,
            created=now,
            updated=now,
            id_prefix=id_prefix,
        )
    )


def generate_default_tick_file(project: str, now: str) -> str:
    """Canonical text of an empty project document."""
    return serialize_tick_file(create_tick_file(project, now))
