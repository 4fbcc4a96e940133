from dataclasses import dataclass

import pytest

from respotcore.spotify_id import FileId, SpotifyAudioType, SpotifyId, SpotifyIdError


@dataclass
class Case:
    id: int
    kind: SpotifyAudioType
    uri: str
    base16: str
    base62: str
    raw: bytes


RAW_B = bytes([154, 27, 28, 251, 198, 242, 68, 86, 154, 224, 53, 108, 119, 187, 233, 216])

CONV_VALID = [
    Case(
        238762092608182713602505436543891614649,
        SpotifyAudioType.TRACK,
        "spotify:track:5sWHDYs0csV6RS48xBl0tH",
        "b39fe8081e1f4c54be38e8d6f9f12bb9",
        "5sWHDYs0csV6RS48xBl0tH",
        bytes([179, 159, 232, 8, 30, 31, 76, 84, 190, 56, 232, 214, 249, 241, 43, 185]),
    ),
    Case(
        204841891221366092811751085145916697048,
        SpotifyAudioType.TRACK,
        "spotify:track:4GNcXTGWmnZ3ySrqvol3o4",
        "9a1b1cfbc6f244569ae0356c77bbe9d8",
        "4GNcXTGWmnZ3ySrqvol3o4",
        RAW_B,
    ),
    Case(
        204841891221366092811751085145916697048,
        SpotifyAudioType.PODCAST,
        "spotify:episode:4GNcXTGWmnZ3ySrqvol3o4",
        "9a1b1cfbc6f244569ae0356c77bbe9d8",
        "4GNcXTGWmnZ3ySrqvol3o4",
        RAW_B,
    ),
    Case(
        204841891221366092811751085145916697048,
        SpotifyAudioType.NON_PLAYABLE,
        "spotify:unknown:4GNcXTGWmnZ3ySrqvol3o4",
        "9a1b1cfbc6f244569ae0356c77bbe9d8",
        "4GNcXTGWmnZ3ySrqvol3o4",
        RAW_B,
    ),
]

CONV_INVALID = [
    Case(
        0,
        SpotifyAudioType.NON_PLAYABLE,
        "spotify:arbitrarywhatever:5sWHDYs0Bl0tH",
        "ZZZZZ8081e1f4c54be38e8d6f9f12bb9",
        "!!!!!Ys0csV6RS48xBl0tH",
        bytes([154, 27, 28, 251, 198, 242, 68, 86, 154, 224, 5, 3, 108, 119, 187, 233, 216, 255]),
    ),
    Case(
        0,
        SpotifyAudioType.NON_PLAYABLE,
        "spotify:arbitrarywhatever5sWHDYs0csV6RS48xBl0tH",
        "--------------------",
        "....................",
        bytes([154, 27, 28, 251]),
    ),
    Case(
        0,
        SpotifyAudioType.NON_PLAYABLE,
        "spotify:azb:aRS48xBl0tH",
        "--------------------",
        "....................",
        bytes([154, 27, 28, 251]),
    ),
]


@pytest.mark.parametrize("case", CONV_VALID)
def test_from_base62(case):
    assert SpotifyId.from_base62(case.base62).id == case.id


@pytest.mark.parametrize("case", CONV_INVALID)
def test_from_base62_invalid(case):
    with pytest.raises(SpotifyIdError):
        SpotifyId.from_base62(case.base62)


@pytest.mark.parametrize("case", CONV_VALID)
def test_to_base62(case):
    assert SpotifyId(case.id, case.kind).to_base62() == case.base62


@pytest.mark.parametrize("case", CONV_VALID)
def test_from_base16(case):
    assert SpotifyId.from_base16(case.base16).id == case.id


@pytest.mark.parametrize("case", CONV_INVALID)
def test_from_base16_invalid(case):
    with pytest.raises(SpotifyIdError):
        SpotifyId.from_base16(case.base16)


@pytest.mark.parametrize("case", CONV_VALID)
def test_to_base16(case):
    assert SpotifyId(case.id, case.kind).to_base16() == case.base16


@pytest.mark.parametrize("case", CONV_VALID)
def test_from_uri(case):
    actual = SpotifyId.from_uri(case.uri)
    assert actual.id == case.id
    assert actual.audio_type == case.kind


@pytest.mark.parametrize("case", CONV_INVALID)
def test_from_uri_invalid(case):
    with pytest.raises(SpotifyIdError):
        SpotifyId.from_uri(case.uri)


@pytest.mark.parametrize("case", CONV_VALID)
def test_to_uri(case):
    assert SpotifyId(case.id, case.kind).to_uri() == case.uri


@pytest.mark.parametrize("case", CONV_VALID)
def test_from_raw(case):
    assert SpotifyId.from_raw(case.raw).id == case.id


@pytest.mark.parametrize("case", CONV_INVALID)
def test_from_raw_invalid(case):
    with pytest.raises(SpotifyIdError):
        SpotifyId.from_raw(case.raw)


@pytest.mark.parametrize("case", CONV_VALID)
def test_to_raw(case):
    assert SpotifyId(case.id, case.kind).to_raw() == case.raw


def test_from_uri_requires_prefix():
    with pytest.raises(SpotifyIdError):
        SpotifyId.from_uri("track:5sWHDYs0csV6RS48xBl0tH")


def test_parsed_ids_default_to_track():
    assert SpotifyId.from_base62("5sWHDYs0csV6RS48xBl0tH").audio_type is SpotifyAudioType.TRACK


def test_audio_type_from_name():
    assert SpotifyAudioType.from_name("track") is SpotifyAudioType.TRACK
    assert SpotifyAudioType.from_name("episode") is SpotifyAudioType.PODCAST
    assert SpotifyAudioType.from_name("album") is SpotifyAudioType.NON_PLAYABLE


def test_zero_id_pads_encodings():
    zero = SpotifyId(0)
    assert zero.to_base62() == "0" * 22
    assert zero.to_base16() == "0" * 32


def test_error_is_value_error():
    with pytest.raises(ValueError):
        SpotifyId.from_base62("!")


def test_file_id_to_base16_and_str():
    file_id = FileId(bytes(range(20)))
    assert file_id.to_base16() == bytes(range(20)).hex()
    assert str(file_id) == file_id.to_base16()
    assert len(file_id.to_base16()) == 40


def test_file_id_wrong_length():
    with pytest.raises(ValueError):
        FileId(b"\x00" * 19)