import pytest

from gcedeploy.options import BuildOptions, RunOptions


def test_build_returns_builder_result():
    seen = []

    def builder(opts):
        seen.append(opts)
        return "v1.2.3"

    opts = BuildOptions(repo_root="/repo", builder=builder)
    assert opts.build() == "v1.2.3"
    assert seen == [opts]


def test_stage_passes_version_to_stager():
    staged = []
    opts = BuildOptions(
        repo_root="/repo",
        stage_location="gs://bucket",
        stager=lambda o, v: staged.append((o.stage_location, v)),
    )
    opts.stage("v9")
    assert staged == [("gs://bucket", "v9")]


def test_default_builder_and_stager_do_nothing():
    opts = BuildOptions(repo_root="/repo")
    assert opts.build() == ""
    assert opts.stage("v1") is None


def test_default_strategy_and_arch():
    opts = BuildOptions()
    assert opts.strategy == "make"
    assert opts.target_build_arch == "linux/amd64"


def test_validate_requires_repo_root():
    with pytest.raises(ValueError):
        BuildOptions().validate()


def test_validate_requires_strategy():
    with pytest.raises(ValueError):
        BuildOptions(repo_root="/repo", strategy="").validate()


def test_validate_accepts_complete_options():
    opts = BuildOptions(repo_root="/repo")
    opts.validate()
    assert opts.repo_root == "/repo"


def test_run_options_hold_values():
    opts = RunOptions(run_id="abc", run_dir="/runs/abc", up=True)
    assert (opts.run_id, opts.run_dir, opts.build, opts.up, opts.down) == (
        "abc",
        "/runs/abc",
        False,
        True,
        False,
    )