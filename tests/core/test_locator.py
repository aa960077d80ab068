from __future__ import annotations

from pathlib import Path

from runner_fleet_ops.core.locator import candidate_roots, locate_log_dirs, platform_key


def test_platform_key() -> None:
    assert platform_key("win32") == "win32"
    assert platform_key("cygwin") == "win32"
    assert platform_key("darwin") == "darwin"
    assert platform_key("linux") == "linux"
    assert platform_key("freebsd13") == "linux"


def test_extras_come_first_and_are_deduplicated(tmp_path: Path) -> None:
    home = tmp_path / "home"
    diag = home / "actions-runner" / "_diag"

    roots = candidate_roots(platform="linux", home=home, extra=[diag, tmp_path / "x"])

    assert roots[0] == diag
    assert roots[1] == tmp_path / "x"
    assert roots.count(diag) == 1


def test_windows_candidates(tmp_path: Path) -> None:
    roots = candidate_roots(platform="win32", home=tmp_path)

    assert roots[0].parts[-2:] == ("actions-runner", "_diag")
    assert tmp_path / "actions-runner" / "_diag" in roots


def test_custom_strategy_table(tmp_path: Path) -> None:
    roots = candidate_roots(
        platform="linux",
        home=tmp_path,
        strategies={"linux": lambda home: [home / "custom"]},
    )
    assert roots == [tmp_path / "custom"]


def test_locate_returns_existing_only(tmp_path: Path) -> None:
    diag = tmp_path / "actions-runner" / "_diag"
    diag.mkdir(parents=True)

    found = locate_log_dirs(platform="darwin", home=tmp_path, extra=[tmp_path / "missing"])

    assert found == [diag]
