from __future__ import annotations

import random
import string
from typing import TYPE_CHECKING

import pytest

from rank_repo.config import ScoredPath
from rank_repo.scorer import classify, classify_many, is_generated, is_test_file, resolve_jobs, sort_scored

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.unit
@pytest.mark.parametrize("path", ["src/main.rs", "src/lib.rs", "index.js", "app.py", "pkg/__main__.py", "cli.ts"])
def test_entry_points_score_ten(path: str) -> None:
    scored = classify(path)
    assert scored.score == 10
    assert scored.reason == "entry point"


@pytest.mark.unit
def test_readme_is_demoted_under_low_priority_or_test_dirs() -> None:
    assert classify("README.md").score == 10
    assert classify("docs/README.md").score == 5
    assert classify("tests/README.rst").score == 5
    assert classify("src/README").score == 10


@pytest.mark.unit
def test_config_files() -> None:
    assert classify("config.toml").score == 9
    assert classify("settings.json").score == 9
    assert classify("deep/a/b/c/d/config.yaml").reasons == ("config",)


@pytest.mark.unit
@pytest.mark.parametrize("name", ["Cargo.toml", "package.json", "Dockerfile", "pyproject.toml", "go.mod"])
def test_project_manifests(name: str) -> None:
    scored = classify(name)
    assert scored.score == 8
    assert scored.reason == "project file"


@pytest.mark.unit
def test_test_files() -> None:
    assert classify("test_foo.py").score == 5
    assert classify("foo_test.go").score == 5
    assert classify("foo.test.ts").score == 5
    assert classify("foo.spec.js").reason == "test file"


@pytest.mark.unit
@pytest.mark.parametrize(
    "path",
    ["package-lock.json", "Cargo.lock", "bundle.min.js", "types.generated.ts", "bundle.js.map", "dump.sql", "x.bak"],
)
def test_generated_files(path: str) -> None:
    scored = classify(path)
    assert scored.score == 2
    assert scored.reason == "generated or insignificant"


@pytest.mark.unit
def test_first_matching_rule_wins() -> None:
    # "-lock." is checked before the manifest table
    assert classify("package-lock.json").reason == "generated or insignificant"
    assert classify("main.test.ts").reason == "entry point"
    assert classify("pkg/__init__.py").score == 3


@pytest.mark.unit
def test_directory_adjustments() -> None:
    assert classify("src/foo.rs").score == 9
    assert classify("core/foo.rs").score == 9
    assert classify("api/foo.rs").score == 8
    assert classify("tests/foo.rs").score == 5
    assert classify("vendor/foo.rs").score == 4
    assert classify("src/handler.rs").score > classify("vendor/util.rs").score


@pytest.mark.unit
def test_directory_adjustment_applies_once() -> None:
    scored = classify("src/lib/core/foo.rs")
    assert scored.reasons.count("important dir") == 1
    assert scored.score == 8


@pytest.mark.unit
def test_depth_adjustments() -> None:
    assert classify("foo.rs").score == 8
    assert classify("a/foo.rs").score == 7
    assert classify("a/b/foo.rs").score == 7
    assert classify("a/b/c/foo.rs").score == 6
    assert classify("a/b/c/d/foo.rs").score == 6
    assert classify("a/b/c/d/e/foo.rs").score == 5


@pytest.mark.unit
def test_extension_adjustments() -> None:
    assert classify("schema.proto").score == 9
    assert classify("api/schema.graphql").score == 9
    assert classify("docs.md").score == 7
    assert classify("notes/guide.rst").reasons == ("doc file",)


@pytest.mark.unit
def test_score_is_clamped() -> None:
    scored = classify("vendor/tests/a/b/c/guide.md")
    assert scored.score == 1
    assert scored.reasons == ("test dir", "low priority dir", "deep nesting", "doc file")


@pytest.mark.unit
def test_reason_defaults_to_base_score() -> None:
    scored = classify("a/foo.rs")
    assert scored.reasons == ()
    assert scored.reason == "base score"


@pytest.mark.unit
def test_classify_is_total_and_deterministic() -> None:
    rng = random.Random(1234)
    alphabet = string.ascii_letters + string.digits + "/._- é漢"
    for _ in range(500):
        path = "".join(rng.choice(alphabet) for _ in range(rng.randint(0, 60)))
        first = classify(path)
        assert 1 <= first.score <= 10
        assert classify(path) == first


@pytest.mark.unit
def test_deep_paths_never_score_above_eight() -> None:
    rng = random.Random(42)
    alphabet = string.ascii_lowercase + string.digits + "/"
    for _ in range(500):
        path = "".join(rng.choice(alphabet) for _ in range(rng.randint(1, 100)))
        if path.count("/") > 4:
            assert classify(path).score <= 8


@pytest.mark.unit
def test_scenario_repository() -> None:
    by_path = {
        s.path: s.score
        for s in classify_many(
            ["README.md", "main.go", "go.mod", "src/handler.go", "vendor/util.go", "tests/test_x.go"],
        )
    }
    assert by_path["README.md"] == 10
    assert by_path["main.go"] == 10
    assert by_path["go.mod"] == 8
    assert by_path["src/handler.go"] > by_path["vendor/util.go"]
    assert by_path["tests/test_x.go"] == 5


@pytest.mark.unit
def test_sort_scored_orders_by_score_then_path() -> None:
    items = [
        ScoredPath(path="b.rs", score=5),
        ScoredPath(path="a.rs", score=5),
        ScoredPath(path="z.rs", score=9),
    ]
    assert [s.path for s in sort_scored(items)] == ["z.rs", "a.rs", "b.rs"]


@pytest.mark.unit
@pytest.mark.parametrize("jobs", [1, 4, 0])
def test_classify_many_is_independent_of_job_count(jobs: int) -> None:
    paths = [f"pkg{i % 7}/mod{i}.py" for i in range(300)] + ["README.md", "README.md"]
    result = classify_many(paths, jobs=jobs)
    assert result == classify_many(paths, jobs=1)
    assert len(result) == 301
    assert result[0].path == "README.md"


@pytest.mark.unit
def test_resolve_jobs(mocker: MockerFixture) -> None:
    mocker.patch("rank_repo.scorer.os.cpu_count", return_value=None)
    assert resolve_jobs(0) == 1
    assert resolve_jobs(3) == 3


@pytest.mark.unit
def test_name_predicates() -> None:
    assert is_generated("yarn.lock")
    assert not is_generated("lockfile.py")
    assert is_test_file("test_x.py")
    assert not is_test_file("contest.py")
