import io
import json
import pathlib

import PIL.Image
import pypdf
import pytest

import nup_sheet_composer.cli
import nup_sheet_composer.config

from conftest import BLACK, WHITE, build_pdf_bytes


cli = nup_sheet_composer.cli
config = nup_sheet_composer.config


#============================================
def _write_source(tmp_path: pathlib.Path, name: str, page_specs: list) -> pathlib.Path:
	path = tmp_path / name
	path.write_bytes(build_pdf_bytes(page_specs))
	return path


#============================================
def test_parse_args_defaults() -> None:
	args = cli.parse_args(["in.pdf", "-o", "out.pdf"])
	assert args.n_up == config.DEFAULT_N_UP
	assert args.show_borders
	assert args.pages == "all"
	assert args.scale == config.PRODUCTION_SCALE
	assert args.workers == 1
	assert args.verbose
	assert args.overlays == []
	assert cli.build_layout(args) == config.LayoutSettings(n_up=4, show_borders=True)
	assert cli.build_page_defaults(args) == config.PLAIN_DEFAULTS


#============================================
def test_page_defaults_from_flags() -> None:
	"""
	Ink saver defaults can be adjusted field by field.
	"""
	args = cli.parse_args(["in.pdf", "-o", "out.pdf", "--ink-saver-defaults", "-w", "30", "-r", "180"])
	defaults = cli.build_page_defaults(args)
	assert defaults.filters.invert
	assert defaults.filters.grayscale
	assert defaults.filters.whiteness == 30
	assert defaults.filters.blackness == 50
	assert defaults.rotation == 180

	args = cli.parse_args(["in.pdf", "-o", "out.pdf", "-k", "250", "-B"])
	assert cli.build_page_defaults(args).filters.blackness == 100
	assert not cli.build_layout(args).show_borders


#============================================
def test_parse_overlay_arg() -> None:
	assert cli.parse_overlay_arg("3=notes.png") == (3, pathlib.Path("notes.png"))


#============================================
@pytest.mark.parametrize("argv", [
	["in.pdf", "-o", "out.pdf", "--overlay", "notes.png"],
	["in.pdf", "-o", "out.pdf", "--overlay", "x=notes.png"],
	["in.pdf", "-o", "out.pdf", "-n", "9"],
	["in.pdf", "-o", "out.pdf", "--scale", "0"],
	["in.pdf", "-o", "out.pdf", "-r", "45"],
])
def test_parse_args_rejects(argv: list) -> None:
	with pytest.raises(SystemExit):
		cli.parse_args(argv)


#============================================
def test_main_end_to_end(tmp_path: pathlib.Path) -> None:
	"""
	Two inputs, a page order, an overlay, and a manifest.
	"""
	first = _write_source(tmp_path, "first.pdf", [(100, 140, WHITE)] * 3)
	second = _write_source(tmp_path, "second.pdf", [(100, 140, BLACK)] * 2)
	overlay_path = tmp_path / "notes.png"
	PIL.Image.new("RGBA", (20, 28), (255, 0, 0, 128)).save(overlay_path)
	output_path = tmp_path / "out.pdf"
	manifest_path = tmp_path / "out.json"

	status = cli.main([
		str(first),
		str(second),
		"-o", str(output_path),
		"-m", str(manifest_path),
		"-n", "2",
		"-s", "5,1-3",
		"--overlay", f"1={overlay_path}",
		"--scale", "0.5",
		"-q",
	])
	assert status == 0

	reader = pypdf.PdfReader(io.BytesIO(output_path.read_bytes()))
	assert len(reader.pages) == 2

	data = json.loads(manifest_path.read_text(encoding="utf-8"))
	assert data["sheets"] == 2
	assert data["pages_placed"] == 4
	assert data["cells_per_sheet"] == [2, 2]
	sources = [(entry["source"], entry["page"]) for entry in data["pages"]]
	assert sources == [
		("second.pdf", 2),
		("first.pdf", 1),
		("first.pdf", 2),
		("first.pdf", 3),
	]
	assert [entry["overlay"] for entry in data["pages"]] == [False, True, False, False]
	assert data["page_counts"] == {"first.pdf": 3, "second.pdf": 2}
	assert data["layout"]["render_scale"] == 0.5


#============================================
def test_main_default_manifest_and_previews(tmp_path: pathlib.Path) -> None:
	source = _write_source(tmp_path, "source.pdf", [(100, 200, WHITE)] * 3)
	output_path = tmp_path / "out.pdf"
	preview_dir = tmp_path / "previews"
	status = cli.main([
		str(source),
		"-o", str(output_path),
		"--preset", "smart_grid",
		"--preview-dir", str(preview_dir),
		"--scale", "0.5",
		"-j", "2",
		"-q",
	])
	assert status == 0
	manifest = json.loads(pathlib.Path(f"{output_path}.json").read_text(encoding="utf-8"))
	assert manifest["layout"]["n_up"] == 4
	assert all(entry["rotation"] == 90 for entry in manifest["pages"])

	previews = sorted(preview_dir.glob("preview_*.jpg"))
	assert [path.name for path in previews] == ["preview_001.jpg", "preview_002.jpg", "preview_003.jpg"]
	with PIL.Image.open(previews[0]) as image:
		assert image.size == (100, 50)


#============================================
def test_main_missing_input(tmp_path: pathlib.Path, capsys) -> None:
	status = cli.main([str(tmp_path / "missing.pdf"), "-o", str(tmp_path / "out.pdf"), "-q"])
	assert status == 1
	assert "Assembly failed" in capsys.readouterr().err
	assert not (tmp_path / "out.pdf").exists()


#============================================
def test_main_page_range_out_of_bounds(tmp_path: pathlib.Path) -> None:
	source = _write_source(tmp_path, "source.pdf", [(100, 140, WHITE)] * 2)
	status = cli.main([str(source), "-o", str(tmp_path / "out.pdf"), "-s", "1-4", "-q"])
	assert status == 2


#============================================
def test_main_missing_overlay_file(tmp_path: pathlib.Path) -> None:
	source = _write_source(tmp_path, "source.pdf", [(100, 140, WHITE)])
	status = cli.main([
		str(source),
		"-o", str(tmp_path / "out.pdf"),
		"--overlay", f"1={tmp_path / 'nope.png'}",
		"-q",
	])
	assert status == 2
