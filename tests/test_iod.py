import pytest

from satobs.iod import (
    Observation,
    convert_rde,
    fake_designation,
    find_designation,
    find_satno,
    format_iod_line,
    main,
    mjd2iod_time,
)
from satobs.timeutil import mjd2date, nfd2mjd

HEADER = "2420 1203   311 0175\n"
DATA = "9806701 203015.12 123456+451230\n"
EXPECTED = "25544 98 067A   2420 G 20120315203015120 37 15 1234560+451230 19"
DEFAULT_LINE = "99999 99 999U   0000 G YYYYMMDDHHMMSSsss 27 25 HHMMmmm+DDMMmm 17 S"


def test_mjd2iod_time_shape_and_date_prefix():
    mjd = 51544.5 + 0.25
    text = mjd2iod_time(mjd)
    year, month, day = mjd2date(mjd)
    assert len(text) == 17
    assert text.isdigit()
    assert text[:8] == f"{year:04d}{month:02d}{int(day):02d}"


def test_mjd2iod_time_round_trip():
    mjd = 51544.5 + 0.3
    s = mjd2iod_time(mjd)
    nfd = f"{s[:4]}-{s[4:6]}-{s[6:8]}T{s[8:10]}:{s[10:12]}:{s[12:14]}.{s[14:]}"
    assert abs(nfd2mjd(nfd) - mjd) * 86400.0 < 0.002


def test_mjd2iod_time_is_monotonic():
    times = [mjd2iod_time(51544.5 + 0.1234567 * k) for k in range(10)]
    assert times == sorted(times)


def test_fake_designation_start_of_2000():
    assert fake_designation(51544.5) == "00501A"


def test_fake_designation_follows_day_of_year():
    a = fake_designation(51544.5)
    b = fake_designation(51544.5 + 10)
    assert int(b[2:5]) - int(a[2:5]) == 10
    assert b.endswith("A")


def test_format_default_observation():
    assert format_iod_line(Observation()) == DEFAULT_LINE


def test_format_time_accuracy_exponent():
    a = format_iod_line(Observation(terr=0.2))
    b = format_iod_line(Observation(terr=0.02))
    assert int(a[42]) - int(b[42]) == 1
    assert a[41] == b[41]
    assert len(a) == len(b)


def test_format_keeps_satno_and_nfd():
    obs = Observation(satno=25544, desig="98067A", nfd="20120315203015120")
    line = format_iod_line(obs)
    assert line[:5] == "25544"
    assert line[23:40] == "20120315203015120"


def test_format_unsupported_position_format():
    with pytest.raises(ValueError):
        format_iod_line(Observation(angle_format=1))


@pytest.fixture
def desig_file(tmp_path):
    path = tmp_path / "desig.txt"
    path.write_text("25544 98067A\n12345 11001B\n")
    return path


def test_find_designation(desig_file):
    assert find_designation(desig_file, 12345) == "11001B"
    assert find_designation(desig_file, 25544) == "98067A"


def test_find_designation_missing(desig_file):
    with pytest.raises(LookupError):
        find_designation(desig_file, 1)


def test_find_satno(desig_file):
    assert find_satno(desig_file, "11001B") == 12345
    assert find_satno(desig_file, "00000X") == 99999


def test_convert_rde_single_observation():
    calls = []

    def lookup(desig):
        calls.append(desig)
        return 25544

    result = list(convert_rde([HEADER, "15\n", DATA], lookup))
    assert result == [EXPECTED]
    assert calls == ["98067A"]


def test_convert_rde_stops_at_end_marker():
    result = list(convert_rde([HEADER, "999\n", "15\n", DATA], lambda d: 1))
    assert result == []


def test_convert_rde_skips_unusable_lines():
    lines = [
        HEADER,
        "15\n",
        "# comment line that is long enough to be read\n",
        "98067\n",
        "9806726 203015.12 123456+451230\n",
        DATA,
    ]
    result = list(convert_rde(lines, lambda d: 25544))
    assert result == [EXPECTED]


def test_convert_rde_unsupported_angle_format():
    header = "2420 1203   312 0175\n"
    assert list(convert_rde([header, "15\n", DATA], lambda d: 1)) == []


def test_convert_rde_zero_accuracy_rejected():
    with pytest.raises(ValueError):
        list(convert_rde(["2420 1203   011 0175\n"], lambda d: 1))


def test_main_prints_iod_lines(tmp_path, monkeypatch, capsys):
    (tmp_path / "data").mkdir()
    (tmp_path / "data" / "desig.txt").write_text("25544 98067A\n")
    rde = tmp_path / "report.txt"
    rde.write_text(HEADER + "15\n" + DATA)
    monkeypatch.setenv("ST_DATADIR", str(tmp_path))
    assert main([str(rde)]) == 0
    assert capsys.readouterr().out == EXPECTED + "\n"


def test_main_without_datadir(tmp_path, monkeypatch):
    rde = tmp_path / "report.txt"
    rde.write_text(HEADER + "15\n" + DATA)
    monkeypatch.delenv("ST_DATADIR", raising=False)
    assert main([str(rde)]) == 1


def test_main_without_designation_file(tmp_path, monkeypatch):
    rde = tmp_path / "report.txt"
    rde.write_text(HEADER + "15\n" + DATA)
    monkeypatch.setenv("ST_DATADIR", str(tmp_path))
    assert main([str(rde)]) == 1