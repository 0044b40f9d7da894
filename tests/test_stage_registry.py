import pytest

from buildkit.engine.plan import series
from buildkit.errors import DuplicateStageError, UnknownStageError
from buildkit.stage_registry import StageRegistry
from buildkit.stage_types import Stage


def _noop(_config) -> None:
    return None


def test_register_and_resolve_in_requested_order():
    registry = StageRegistry()
    registry.register(Stage(name="clean", run=_noop))
    registry.register(Stage(name="style", run=_noop, doc="Compile Sass."))

    stages = registry.resolve(["style", "clean"])
    assert [s.name for s in stages] == ["style", "clean"]
    assert registry.available() == ("clean", "style")
    assert registry.get(" style ").doc == "Compile Sass."


def test_duplicate_registration_poisons_the_name():
    registry = StageRegistry()
    registry.register(Stage(name="style", run=_noop))

    with pytest.raises(DuplicateStageError, match=r"Duplicate stage name: style"):
        registry.register(Stage(name="style", run=lambda _c: None))

    assert "style" not in registry
    with pytest.raises(UnknownStageError, match=r"style \(registered more than once\)"):
        registry.resolve(["style"])

    with pytest.raises(DuplicateStageError):
        registry.register(Stage(name="style", run=_noop))


def test_from_stages_rejects_duplicates_atomically():
    with pytest.raises(DuplicateStageError):
        StageRegistry.from_stages([Stage(name="copy", run=_noop), Stage(name="copy", run=_noop)])


def test_unknown_names_are_reported_together_with_suggestions():
    registry = StageRegistry.from_stages(
        [Stage(name="style", run=_noop), Stage(name="scripts", run=_noop)]
    )

    with pytest.raises(UnknownStageError) as excinfo:
        registry.resolve(["styl", "archive"])

    assert excinfo.value.names == ("styl", "archive")
    assert excinfo.value.suggestions["styl"] == ("style",)
    assert "did you mean: style" in str(excinfo.value)
    assert "available: scripts, style" in str(excinfo.value)


def test_frozen_registry_is_read_only():
    registry = StageRegistry.from_stages([Stage(name="clean", run=_noop)])
    assert registry.frozen

    with pytest.raises(RuntimeError, match=r"frozen"):
        registry.register(Stage(name="style", run=_noop))


def test_validate_plan_resolves_groups_or_fails_before_anything_runs():
    registry = StageRegistry.from_stages(
        [Stage(name="clean", run=_noop), Stage(name="style", run=_noop)]
    )

    groups = registry.validate_plan(series("build", ["clean"], ["style"]))
    assert [[s.name for s in group] for group in groups] == [["clean"], ["style"]]

    with pytest.raises(UnknownStageError, match=r"markup"):
        registry.validate_plan(series("build", ["clean"], ["style", "markup"]))


def test_describe_lists_stage_metadata():
    registry = StageRegistry.from_stages(
        [
            Stage(
                name="images",
                run=_noop,
                inputs=("src/assets/images/**/*",),
                output_subpath="/assets/images/",
                tags=("build",),
            )
        ]
    )

    (row,) = registry.describe()
    assert row["name"] == "images"
    assert row["output_subpath"] == "assets/images"
    assert row["inputs"] == ["src/assets/images/**/*"]
    assert row["source"].endswith("test_stage_registry._noop")


def test_stage_rejects_invalid_fields():
    with pytest.raises(TypeError, match=r"non-empty"):
        Stage(name="  ", run=_noop)
    with pytest.raises(TypeError, match=r"callable"):
        Stage(name="style", run="not callable")  # type: ignore[arg-type]
    with pytest.raises(TypeError, match=r"inputs"):
        Stage(name="style", run=_noop, inputs=(1,))  # type: ignore[arg-type]
