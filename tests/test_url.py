from pathlib import Path

from f1tv_dl.utils.url import build_output_path, get_content_params, is_f1tv_url, parse_f1tv_url


def test_parse_f1tv_url():
    params = parse_f1tv_url("https://f1tv.formula1.com/detail/1000005104/2023-bahrain-grand-prix")
    assert params.id == "1000005104"
    assert params.name == "2023-bahrain-grand-prix"


def test_rejects_other_hosts_and_paths():
    assert not is_f1tv_url("https://example.com/detail/1/race")
    assert not is_f1tv_url("https://f1tv.formula1.com/page/1/race")
    assert not is_f1tv_url("ftp://f1tv.formula1.com/detail/1/race")
    assert not is_f1tv_url("")


def test_get_content_params_falls_back_to_raw_url():
    assert get_content_params("not a url") == ("", "not a url")


def test_output_path_appends_channel_for_race_content(tmp_path):
    path = build_output_path("2023-bahrain-grand-prix", "mp4", "VER onboard", True, str(tmp_path))
    assert path == tmp_path / "2023-bahrain-grand-prix-VER.mp4"


def test_output_path_without_channel_or_for_non_race():
    assert build_output_path("highlights", "ts", "F1 LIVE", False) == Path("highlights.ts")
    assert build_output_path("race", "mp4") == Path("race.mp4")
