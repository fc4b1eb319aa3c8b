from gcedeploy.cli import main


def test_version_prints_provider(capsys):
    assert main(["--version", "--run-id", "abc"]) == 0
    assert capsys.readouterr().out.startswith("gce")


def test_no_phases_succeeds(tmp_path):
    assert main(["--run-dir", str(tmp_path), "--artifacts", str(tmp_path)]) == 0


def test_build_without_build_system_fails(tmp_path, capsys):
    code = main([
        "--build",
        "--repo-root", str(tmp_path),
        "--run-dir", str(tmp_path),
        "--artifacts", str(tmp_path),
    ])
    assert code == 1
    assert "cannot determine build system" in capsys.readouterr().err


def test_down_without_project_fails(tmp_path, capsys):
    code = main([
        "--down",
        "--repo-root", str(tmp_path),
        "--run-dir", str(tmp_path),
        "--artifacts", str(tmp_path),
    ])
    assert code == 1
    assert "gcp project must be set" in capsys.readouterr().err