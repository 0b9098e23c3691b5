from orderedindex.main import build_parser, main


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.order == 4
        assert args.insert == []
        assert args.range is None
        assert args.data is None
        assert args.data_dir == "index_data"


class TestMain:
    """Tests for the command line demo."""

    def test_builds_and_scans(self, capsys):
        code = main(["--insert", "10", "20", "5", "6", "12", "30", "7", "17",
                     "--range", "6", "17"])
        out = capsys.readouterr().out

        assert code == 0
        assert "range_scan(6, 17)" in out
        assert "v12" in out
        assert "height 2" in out

    def test_missing_key_is_reported(self, capsys):
        code = main(["--insert", "1", "--delete", "2"])
        out = capsys.readouterr().out

        assert code == 1
        assert "Key not found: 2" in out

    def test_duplicate_key_is_reported(self, capsys):
        assert main(["--insert", "1", "1"]) == 1
        assert "Duplicate key: 1" in capsys.readouterr().out

    def test_invalid_order(self, capsys):
        assert main(["--order", "2"]) == 1
        assert "Order must be" in capsys.readouterr().out

    def test_file_store_persists_between_runs(self, tmp_path, capsys):
        path = str(tmp_path / "cli.db")
        assert main(["--data", path, "--insert", "1", "2", "3"]) == 0
        capsys.readouterr()

        assert main(["--data", path, "--insert", "4", "--range", "1", "4"]) == 0
        out = capsys.readouterr().out
        assert "4 entries" in out
        assert "v1" in out

    def test_relative_data_file_goes_under_data_dir(self, tmp_path, capsys):
        data_dir = tmp_path / "stores"
        assert main(["--data-dir", str(data_dir), "--data", "demo.db", "--insert", "5"]) == 0
        capsys.readouterr()

        assert (data_dir / "demo.db").is_file()
        assert main(["--data-dir", str(data_dir), "--data", "demo.db", "--range", "0", "9"]) == 0
        assert "v5" in capsys.readouterr().out
