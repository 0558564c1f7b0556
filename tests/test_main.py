import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))
import main


def test_create_list_import_export(tmp_path, capsys):
    data_dir = str(tmp_path / "data")
    assert main.run(["--data-dir", data_dir, "create-box", "Main", "--type", "BOXALL-96"]) == 0
    assert "box_1000\tMain\tBOXALL96" in capsys.readouterr().out

    csv_path = tmp_path / "parts.csv"
    csv_path.write_text("BoxName,Position,PartNumber,Quantity\nMain,A-01,R1,3\nMain,Z-99,R2,1\n")
    assert main.run(["--data-dir", data_dir, "import", str(csv_path), "--dry-run"]) == 0
    out = capsys.readouterr().out
    assert "Ready: 1" in out
    assert "invalid_position" in out

    assert main.run(["--data-dir", data_dir, "import", str(csv_path)]) == 0
    assert "1 imported" in capsys.readouterr().out

    assert main.run(["--data-dir", data_dir, "list-boxes"]) == 0
    assert "1/96" in capsys.readouterr().out

    assert main.run(["--data-dir", data_dir, "export-status"]) == 0
    assert (tmp_path / "data" / "exports" / "boxall_status.json").exists()


def test_backup_and_restore(tmp_path, capsys):
    data_dir = str(tmp_path / "data")
    main.run(["--data-dir", data_dir, "create-box", "Main"])
    main.run(["--data-dir", data_dir, "backup"])
    backups = sorted((tmp_path / "data" / "exports").glob("box_a000_*.json"))
    assert len(backups) == 1
    capsys.readouterr()

    assert main.run(["--data-dir", data_dir, "restore", str(backups[0])]) == 0
    assert "0 overwritten, 1 skipped" in capsys.readouterr().out
    assert main.run(["--data-dir", data_dir, "restore", str(backups[0]), "--overwrite"]) == 0
    assert "1 overwritten" in capsys.readouterr().out
