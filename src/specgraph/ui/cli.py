"""Command-line interface router for specgraph."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from specgraph.config import (
    ConfigLoadError,
    ConfigValidationError,
    assert_valid_config,
    default_config,
    load_config,
)
from specgraph.domain.ids import generate_ulid
from specgraph.domain.models import AcceptanceCriterion, SpecItem
from specgraph.domain.refs import display_ref, format_ref
from specgraph.graph.reference_index import ReferenceIndex, build_index
from specgraph.graph.trait_graph import TraitGraph
from specgraph.main import ExitCode
from specgraph.merge.driver import run_merge_driver
from specgraph.observability.logging import correlation_scope, setup_logging, shutdown_logging
from specgraph.persistence.loader import ProjectLoadError, ProjectSnapshot, load_project
from specgraph.ui.render import CLIRenderer, create_renderer
from specgraph.validation.assessment import (
    assess_task,
    filter_tasks_for_assessment,
    plan_automation_changes,
    summarize_assessments,
)
from specgraph.validation.coverage import AnnotationScanner, StaticCoverage
from specgraph.validation.result import ValidationResult
from specgraph.validation.validator import ValidateOptions, validate

logger = logging.getLogger(__name__)

_EFFECTIVE_CONFIG_ATTR: Final[str] = "effective_config"
_CONFIGLESS_COMMANDS: Final[frozenset[str]] = frozenset({"merge-driver"})


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="specgraph",
        description=(
            "specgraph: reference resolution, trait inheritance, validation and merge\n"
            "for YAML spec/task graphs.\n\n"
            "Common workflows:\n"
            "  specgraph validate             Validate the project in the current directory\n"
            "  specgraph resolve @auth-login  Resolve a reference to its identity\n"
            "  specgraph traits --stats       List traits and usage statistics\n"
            "  specgraph assess --auto        Propose automation markings for tasks\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--repo-root",
        default=".",
        help="Directory to search for the project manifest (default: current directory).",
    )
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to specgraph TOML config (default: <repo-root>/specgraph.toml if present).",
    )
    common.add_argument(
        "--profile",
        default=None,
        help="Optional config profile overlay name.",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output and debug logs.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # validate ------------------------------------------------------------
    validate_parser = subparsers.add_parser(
        "validate",
        parents=[common],
        help="Validate schema, references, orphans, completeness and trait cycles",
        description=(
            "Run every validation pass over the project and report findings.\n\n"
            "Examples:\n"
            "  specgraph validate\n"
            "  specgraph validate --json\n"
            "  specgraph validate --no-completeness --no-orphans\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    validate_parser.add_argument("--json", action="store_true", help="Emit the result as JSON.")
    validate_parser.add_argument(
        "--no-schema", action="store_true", help="Skip the schema pass."
    )
    validate_parser.add_argument(
        "--no-refs", action="store_true", help="Skip reference checking."
    )
    validate_parser.add_argument(
        "--no-orphans", action="store_true", help="Skip orphan detection."
    )
    validate_parser.add_argument(
        "--no-completeness", action="store_true", help="Skip completeness checks."
    )
    validate_parser.set_defaults(handler=_cmd_validate)

    # resolve -------------------------------------------------------------
    resolve_parser = subparsers.add_parser(
        "resolve",
        parents=[common],
        help="Resolve a reference to an entity identity",
        description=(
            "Resolve a reference by exact identity, unique prefix, or alias.\n\n"
            "Examples:\n"
            "  specgraph resolve @auth-login\n"
            "  specgraph resolve @01JX --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    resolve_parser.add_argument("ref", help="Reference to resolve (leading @ is optional).")
    resolve_parser.add_argument("--json", action="store_true", help="Emit the result as JSON.")
    resolve_parser.set_defaults(handler=_cmd_resolve)

    # traits --------------------------------------------------------------
    traits_parser = subparsers.add_parser(
        "traits",
        parents=[common],
        help="List traits or show the criteria an item inherits",
        description=(
            "Without a reference, list every trait. With a reference, show the item's own\n"
            "acceptance criteria followed by the criteria inherited through its traits.\n\n"
            "Examples:\n"
            "  specgraph traits --stats\n"
            "  specgraph traits @auth-login --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    traits_parser.add_argument("ref", nargs="?", default=None, help="Item reference.")
    traits_parser.add_argument("--stats", action="store_true", help="Include trait statistics.")
    traits_parser.add_argument("--json", action="store_true", help="Emit the result as JSON.")
    traits_parser.set_defaults(handler=_cmd_traits)

    # assess --------------------------------------------------------------
    assess_parser = subparsers.add_parser(
        "assess",
        parents=[common],
        help="Assess pending tasks for automation eligibility",
        description=(
            "Check pending tasks for a spec reference with acceptance criteria and a\n"
            "non-spike type, and recommend an automation marking.\n\n"
            "Examples:\n"
            "  specgraph assess\n"
            "  specgraph assess @fix-login --json\n"
            "  specgraph assess --all --auto\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    assess_parser.add_argument("ref", nargs="?", default=None, help="Single task reference.")
    assess_parser.add_argument(
        "--all",
        dest="include_assessed",
        action="store_true",
        help="Include pending tasks that already carry an automation marking.",
    )
    assess_parser.add_argument(
        "--auto", action="store_true", help="Show the automation changes that would be applied."
    )
    assess_parser.add_argument("--json", action="store_true", help="Emit the result as JSON.")
    assess_parser.set_defaults(handler=_cmd_assess)

    # merge-driver --------------------------------------------------------
    merge_parser = subparsers.add_parser(
        "merge-driver",
        help="Git merge driver for YAML record files",
        description=(
            "Semantic three-way merge of YAML record files, invoked by git.\n\n"
            "Configure with:\n"
            "  git config merge.specgraph.driver 'specgraph merge-driver %O %A %B %L %P'\n"
            "and in .gitattributes:\n"
            "  *.tasks.yaml merge=specgraph\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    merge_parser.add_argument("base", help="Common ancestor version (%%O).")
    merge_parser.add_argument("ours", help="Current branch version, overwritten with result (%%A).")
    merge_parser.add_argument("theirs", help="Other branch version (%%B).")
    merge_parser.add_argument(
        "marker_size", nargs="?", default=None, help="Conflict marker size (%%L); ignored."
    )
    merge_parser.add_argument(
        "path", nargs="?", default=None, help="Path of the merged file in the repository (%%P)."
    )
    merge_parser.add_argument("--json", action="store_true", help="Emit the outcome as JSON.")
    merge_parser.set_defaults(handler=_cmd_merge_driver)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show the effective configuration",
        description=(
            "Print the configuration after applying defaults, file, environment and profile.\n\n"
            "Examples:\n"
            "  specgraph config\n"
            "  specgraph config --profile strict --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    config_parser.add_argument("--json", action="store_true", help="Emit the result as JSON.")
    config_parser.set_defaults(handler=_cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return int(ExitCode.CONFIG_ERROR)

    try:
        with _command_logging(namespace):
            result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    """Compatibility wrapper for main-module wiring."""

    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_validate(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    snapshot = _load_snapshot(args)

    options = ValidateOptions.from_config(config)
    options = dataclasses.replace(
        options,
        schema=options.schema and not _flag(args, "no_schema"),
        refs=options.refs and not _flag(args, "no_refs"),
        orphans=options.orphans and not _flag(args, "no_orphans"),
        completeness=options.completeness and not _flag(args, "no_completeness"),
    )
    coverage = _scan_coverage(config, snapshot.root_dir) if options.completeness else None

    result = validate(snapshot, options=options, coverage=coverage)
    logger.info(
        "validation finished",
        extra={
            "valid": result.valid,
            "errors": result.error_count,
            "warnings": result.warning_count,
        },
    )
    exit_code = int(ExitCode.SUCCESS) if result.valid else int(ExitCode.VALIDATION_FAILED)

    if _flag(args, "json"):
        print(result.to_json())
        return exit_code

    _render_validation(_get_renderer(args), snapshot, result)
    return exit_code


def _cmd_resolve(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    snapshot = _load_snapshot(args)
    index = _build_index(config, snapshot)
    ref = _require_str(getattr(args, "ref", None), "ref")

    result = index.resolve(ref)
    payload: dict[str, object] = {"command": "resolve", "ref": ref, **result.to_dict()}
    entity = index.get(result.identity) if result.identity is not None else None
    if result.ok and entity is not None:
        payload["kind"] = str(index.kind_of(entity.id))
        payload["match"] = str(result.match)
        payload["title"] = entity.title
        payload["displayRef"] = format_ref(entity)

    if _flag(args, "json"):
        _emit_json(payload)
        return int(ExitCode.SUCCESS) if result.ok else int(ExitCode.VALIDATION_FAILED)

    renderer = _get_renderer(args)
    if not result.ok or entity is None:
        renderer.fail(f"{ref}: {result.error}")
        if result.candidates:
            renderer.section("Candidates", len(result.candidates))
            renderer.items(_candidate_labels(index, result.candidates))
        return int(ExitCode.VALIDATION_FAILED)

    renderer.kv("Identity", entity.id)
    renderer.kv("Ref", format_ref(entity))
    renderer.kv("Kind", index.kind_of(entity.id))
    renderer.kv("Title", entity.title)
    renderer.kv("Match", result.match)
    return int(ExitCode.SUCCESS)


def _cmd_traits(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    snapshot = _load_snapshot(args)
    index = _build_index(config, snapshot)
    graph = TraitGraph(index, snapshot.items)
    cycles = graph.detect_cycles()

    ref = _optional_str(getattr(args, "ref", None))
    if ref is not None:
        return _show_item_traits(args, index, graph, ref)

    traits = graph.traits()
    stats = graph.stats() if _flag(args, "stats") else None
    if _flag(args, "json"):
        payload: dict[str, object] = {
            "command": "traits",
            "traits": [
                {
                    "ref": format_ref(trait),
                    "identity": trait.id,
                    "title": trait.title,
                    "criteria": len(trait.acceptance_criteria),
                    "implementers": len(graph.implementers(trait.id)),
                }
                for trait in traits
            ],
            "cycles": [cycle.to_dict() for cycle in cycles],
        }
        if stats is not None:
            payload["stats"] = stats.to_dict()
        _emit_json(payload)
        return int(ExitCode.SUCCESS)

    renderer = _get_renderer(args)
    if not traits:
        renderer.text("No traits defined.")
    renderer.table(
        ("Trait", "Title", "ACs", "Used by"),
        [
            (
                format_ref(trait),
                trait.title,
                str(len(trait.acceptance_criteria)),
                str(len(graph.implementers(trait.id))),
            )
            for trait in traits
        ],
        title=f"Traits ({len(traits)})",
    )
    if stats is not None:
        renderer.section("Statistics")
        renderer.kv("  Total traits", stats.total_traits)
        renderer.kv("  Items with traits", stats.items_with_traits)
        renderer.kv("  Avg traits per item", stats.avg_traits_per_item)
    for cycle in cycles:
        renderer.warning(cycle.message)
    return int(ExitCode.SUCCESS)


def _show_item_traits(
    args: argparse.Namespace,
    index: ReferenceIndex,
    graph: TraitGraph,
    ref: str,
) -> int:
    entity = index.resolve_entity(ref)
    if not isinstance(entity, SpecItem):
        raise CLIError(f"spec item not found: {ref}", exit_code=int(ExitCode.VALIDATION_FAILED))

    own, inherited = graph.all_criteria(entity.id)
    trait_refs = [_display_identity(index, identity) for identity in graph.traits_of(entity.id)]

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "traits",
                "item": format_ref(entity),
                "title": entity.title,
                "traits": trait_refs,
                "ownCriteria": [criterion.to_dict() for criterion in own],
                "inheritedCriteria": [entry.to_dict() for entry in inherited],
            }
        )
        return int(ExitCode.SUCCESS)

    renderer = _get_renderer(args)
    renderer.heading(f"{format_ref(entity)} {entity.title}")
    renderer.section("Traits", len(trait_refs))
    renderer.items(trait_refs or ["(none)"])
    renderer.section("Own acceptance criteria", len(own))
    renderer.items([_criterion_text(criterion) for criterion in own] or ["(none)"])
    renderer.section("Inherited acceptance criteria", len(inherited))
    renderer.items(
        [f"{entry.trait_ref} {_criterion_text(entry.criterion)}" for entry in inherited]
        or ["(none)"]
    )
    return int(ExitCode.SUCCESS)


def _cmd_assess(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    snapshot = _load_snapshot(args)
    index = _build_index(config, snapshot)

    try:
        tasks = filter_tasks_for_assessment(
            snapshot.tasks,
            index,
            task_ref=_optional_str(getattr(args, "ref", None)),
            include_assessed=_flag(args, "include_assessed"),
        )
    except ValueError as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.VALIDATION_FAILED)) from exc

    assessments = [assess_task(task, index) for task in tasks]
    summary = summarize_assessments(assessments)
    changes = plan_automation_changes(assessments) if _flag(args, "auto") else ()
    logger.info("assessment finished", extra={"tasks": summary.total})

    if _flag(args, "json"):
        payload: dict[str, object] = {
            "command": "assess",
            "assessments": [assessment.to_dict() for assessment in assessments],
            "summary": summary.to_dict(),
        }
        if _flag(args, "auto"):
            payload["changes"] = [change.to_dict() for change in changes]
        _emit_json(payload)
        return int(ExitCode.SUCCESS)

    renderer = _get_renderer(args)
    if not assessments:
        renderer.text("No pending tasks to assess.")
        return int(ExitCode.SUCCESS)

    for assessment in assessments:
        renderer.heading(f"{assessment.task_ref} {assessment.title}")
        for criterion in assessment.criteria:
            if criterion.skipped:
                marker = "skip"
            else:
                marker = "pass" if criterion.passed else "fail"
            detail = f" ({criterion.detail})" if criterion.detail else ""
            renderer.text(f"  [{marker}] {criterion.name}{detail}")
        renderer.text(f"  -> {assessment.recommendation}: {assessment.reason}")
        renderer.blank()

    renderer.heading("Summary")
    renderer.kv("  review_for_eligible", summary.review_for_eligible)
    renderer.kv("  needs_review", summary.needs_review)
    renderer.kv("  manual_only", summary.manual_only)
    renderer.kv("  total", summary.total)

    if changes:
        renderer.table(
            ("Task", "Action", "Reason"),
            [(change.task_ref, str(change.action), change.reason) for change in changes],
            title="Proposed changes",
        )
    return int(ExitCode.SUCCESS)


def _cmd_merge_driver(args: argparse.Namespace) -> int:
    outcome = run_merge_driver(
        _require_str(getattr(args, "base", None), "base"),
        _require_str(getattr(args, "ours", None), "ours"),
        _require_str(getattr(args, "theirs", None), "theirs"),
        file_path=_optional_str(getattr(args, "path", None)),
    )
    exit_code = int(ExitCode.SUCCESS) if outcome.ok else int(ExitCode.MERGE_FAILED)

    if _flag(args, "json"):
        _emit_json({"command": "merge-driver", **outcome.to_dict()})
        return exit_code

    print(outcome.message, file=sys.stdout if outcome.ok else sys.stderr)
    return exit_code


def _cmd_config(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    profile = _optional_str(getattr(args, "profile", None))

    payload: dict[str, object] = {
        "command": "config",
        "active_profile": profile,
        "config": config,
    }

    if _flag(args, "json"):
        _emit_json(payload)
        return int(ExitCode.SUCCESS)

    renderer = _get_renderer(args)
    renderer.kv("Active profile", profile or "(default)")
    renderer.text(json.dumps(config, indent=2, sort_keys=True, ensure_ascii=False))
    return int(ExitCode.SUCCESS)


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    """Retrieve or create a CLI renderer from the parsed namespace."""

    no_color = _flag(args, "no_color")
    verbose = _flag(args, "verbose")
    return create_renderer(no_color=no_color, verbose=verbose)


def _render_validation(
    renderer: CLIRenderer, snapshot: ProjectSnapshot, result: ValidationResult
) -> None:
    """Render validation findings as titled sections in a fixed order."""

    renderer.heading(f"Project: {snapshot.root_dir}")
    renderer.kv("Files checked", result.stats.files_checked)
    renderer.kv("Items checked", result.stats.items_checked)
    renderer.kv("Tasks checked", result.stats.tasks_checked)
    if result.meta_stats is not None:
        meta = result.meta_stats
        renderer.kv(
            "Meta",
            f"{meta.agents} agents, {meta.workflows} workflows, "
            f"{meta.conventions} conventions, {meta.observations} observations",
        )

    if result.schema_errors:
        renderer.section("Schema errors", len(result.schema_errors))
        renderer.items(
            [
                f"{error.file}: {error.message}" + (f" ({error.path})" if error.path else "")
                for error in result.schema_errors
            ]
        )
    if result.ref_errors:
        renderer.section("Reference errors", len(result.ref_errors))
        renderer.items([_finding_text(finding) for finding in result.ref_errors])
    if result.ref_warnings:
        renderer.section("Reference warnings", len(result.ref_warnings))
        renderer.items([_finding_text(finding) for finding in result.ref_warnings])
    if result.orphans:
        renderer.section("Orphans", len(result.orphans))
        renderer.items(
            [
                f"{display_ref(orphan.identity)} [{orphan.kind}] {orphan.title}"
                for orphan in result.orphans
            ]
        )
    if result.completeness_warnings:
        renderer.section("Completeness warnings", len(result.completeness_warnings))
        lines: list[str] = []
        for warning in result.completeness_warnings:
            lines.append(f"{warning.item_ref} {warning.item_title}: {warning.message}")
            if renderer.verbose and warning.details:
                lines.append(f"    {warning.details}")
        renderer.items(lines)
    if result.trait_cycle_errors:
        renderer.section("Trait cycle errors", len(result.trait_cycle_errors))
        renderer.items([cycle.message for cycle in result.trait_cycle_errors])

    renderer.blank()
    counts = f"{result.error_count} error(s), {result.warning_count} warning(s)"
    if result.valid:
        renderer.ok(f"Validation passed ({counts})")
    else:
        renderer.fail(f"Validation failed ({counts})")


def _finding_text(finding: object) -> str:
    ref = getattr(finding, "ref", "")
    field = getattr(finding, "field", "")
    message = getattr(finding, "message", "")
    file = getattr(finding, "file", None)
    location = f" [{file}]" if file else ""
    return f"{ref} in {field}: {message}{location}"


def _criterion_text(criterion: AcceptanceCriterion) -> str:
    parts = [
        f"{label} {value}"
        for label, value in (
            ("given", criterion.given),
            ("when", criterion.when),
            ("then", criterion.then),
        )
        if value
    ]
    return f"{criterion.id}: {', '.join(parts)}" if parts else criterion.id


def _candidate_labels(index: ReferenceIndex, candidates: Sequence[str]) -> list[str]:
    labels: list[str] = []
    for identity in candidates:
        entity = index.get(identity)
        title = f" {entity.title}" if entity is not None else ""
        labels.append(f"{identity}{title}")
    return labels


def _display_identity(index: ReferenceIndex, identity: str) -> str:
    entity = index.get(identity)
    return format_ref(entity) if entity is not None else display_ref(identity)


# ---------------------------------------------------------------------------
# Helpers: config, logging, project loading
# ---------------------------------------------------------------------------


def _repo_root(args: argparse.Namespace) -> Path:
    raw = _require_str(getattr(args, "repo_root", None), "repo_root")
    candidate = Path(raw).expanduser().resolve()
    if not candidate.exists() or not candidate.is_dir():
        raise CLIError(
            f"repo root is not a directory: {candidate}", exit_code=int(ExitCode.CONFIG_ERROR)
        )
    return candidate


def _load_effective_config(args: argparse.Namespace) -> dict[str, object]:
    cached = getattr(args, _EFFECTIVE_CONFIG_ATTR, None)
    if isinstance(cached, dict):
        return cached

    config_path = _optional_str(getattr(args, "config_path", None))
    profile = _optional_str(getattr(args, "profile", None))
    overrides: dict[str, object] = {}
    if _flag(args, "verbose"):
        overrides["observability.log_level"] = "DEBUG"

    try:
        loaded = load_config(
            config_path,
            profile=profile,
            cli_overrides=overrides,
            base_dir=_repo_root(args),
        )
        validated = assert_valid_config(loaded, active_profile=profile)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.CONFIG_ERROR)) from exc

    effective = {key: value for key, value in validated.items()}
    setattr(args, _EFFECTIVE_CONFIG_ATTR, effective)
    return effective


@contextmanager
def _command_logging(args: argparse.Namespace) -> Iterator[None]:
    """Configure logging for one command invocation and tear it down afterwards."""

    command = _optional_str(getattr(args, "command", None)) or "unknown"
    if command in _CONFIGLESS_COMMANDS:
        config: Mapping[str, object] = default_config()
    else:
        config = _load_effective_config(args)
    observability = config.get("observability")

    run_id = generate_ulid()
    setup_logging(
        observability if isinstance(observability, Mapping) else None,
        run_id=run_id,
    )
    try:
        with correlation_scope(run_id=run_id, command=command):
            logger.debug("command started")
            yield
    finally:
        shutdown_logging()


def _load_snapshot(args: argparse.Namespace) -> ProjectSnapshot:
    repo_root = _repo_root(args)
    try:
        return load_project(repo_root)
    except ProjectLoadError as exc:
        raise CLIError(str(exc), exit_code=int(ExitCode.CONFIG_ERROR)) from exc


def _build_index(config: Mapping[str, object], snapshot: ProjectSnapshot) -> ReferenceIndex:
    resolver = config.get("resolver")
    return build_index(
        snapshot.tasks,
        snapshot.items,
        snapshot.meta_items,
        resolver_config=resolver if isinstance(resolver, Mapping) else None,
    )


def _scan_coverage(config: Mapping[str, object], root_dir: Path) -> StaticCoverage:
    section = config.get("coverage")
    coverage_cfg: Mapping[str, object] = section if isinstance(section, Mapping) else {}
    scanner = AnnotationScanner(
        root_dir,
        test_dirs=_string_sequence(coverage_cfg.get("test_dirs", ("tests",))),
        patterns=_string_sequence(coverage_cfg.get("patterns", ("*.py",))),
    )
    return scanner.scan()


# ---------------------------------------------------------------------------
# Helpers: argument parsing
# ---------------------------------------------------------------------------


def _require_str(value: object, name: str) -> str:
    if not isinstance(value, str):
        raise CLIError(f"invalid {name}: expected string", exit_code=int(ExitCode.CONFIG_ERROR))
    cleaned = value.strip()
    if not cleaned:
        raise CLIError(
            f"invalid {name}: value cannot be empty", exit_code=int(ExitCode.CONFIG_ERROR)
        )
    return cleaned


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise CLIError("invalid optional string argument", exit_code=int(ExitCode.CONFIG_ERROR))
    cleaned = value.strip()
    return cleaned or None


def _flag(args: argparse.Namespace, name: str) -> bool:
    value = getattr(args, name, False)
    return bool(value)


def _string_sequence(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        cleaned = value.strip()
        return () if not cleaned else (cleaned,)
    if not isinstance(value, Sequence):
        raise CLIError("invalid sequence argument", exit_code=int(ExitCode.CONFIG_ERROR))

    parsed: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise CLIError("invalid sequence argument", exit_code=int(ExitCode.CONFIG_ERROR))
        cleaned = item.strip()
        if cleaned:
            parsed.append(cleaned)
    return tuple(parsed)


__all__ = [
    "CLIError",
    "build_parser",
    "main",
    "run_cli",
]


if __name__ == "__main__":
    raise SystemExit(run_cli())
