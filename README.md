# respotcore

The building blocks of a client for a streaming-music service. It holds the
parts that work without a live server session. It is a library and installs no
command-line programs.

## What is in it

- `respotcore.spotify_id`: `SpotifyId` converts between base16, base62, raw
  16-byte and `spotify:{type}:{id}` URI forms, and carries a
  `SpotifyAudioType`. `FileId` is a 20-byte file identifier with a base16 form.
  Parse failures raise `SpotifyIdError`, which is a `ValueError`.
- `respotcore.authentication`: `Credentials` can be built from a password with
  `with_password` or from an encrypted blob that a discovery client sends with
  `with_blob`. They convert to and from JSON with `to_json` and `from_json`.
  Bad input raises `CredentialsError`.
- `respotcore.cache`: `Cache` stores credentials, the volume and audio files
  on disk. If a size limit is given, a `SizeLimiter` tracks the audio files and
  deletes the least recently used ones once the limit is passed.
  `remove_file` raises `RemoveFileError` on failure.
- `respotcore.config`: `SessionConfig`, `ConnectConfig` and `DeviceType`.
  `DeviceType.parse` ignores case, and `str()` gives the display name.
- `respotcore.diffie_hellman`: `DhLocalKeys` does the key exchange over the
  768-bit group.
- `respotcore.channel`: `ChannelManager` allocates channel ids and routes
  incoming packets to them with `dispatch`. It also keeps a download-rate
  estimate. Each `Channel` is an async iterator of `HeaderEvent` and
  `DataEvent`. `split()` divides it into a header stream and a data stream.
- `respotcore.proxytunnel`: `proxy_connect` opens an HTTP `CONNECT` tunnel
  over a pair of asyncio streams. It raises `ProxyError` unless the proxy
  answers 200.
- `respotcore.apresolve`: `apresolve` asks the resolver service for an access
  point and falls back to `ap.spotify.com:443` on any failure.
  `try_apresolve` raises instead of falling back. `select_access_point` picks
  from a given list.
- `respotcore.restrictions`: `Restriction`, `countrylist_contains` and
  `parse_restrictions` decide whether an item is available in a country.
- `respotcore.discovery_server` and `respotcore.discovery`: `Discovery` runs an
  HTTP server that answers `getInfo` and `addUser` requests. It also announces
  the `_spotify-connect._tcp` service with multicast DNS, and yields the
  `Credentials` that clients send.
- `respotcore.util`: `SeqGenerator`, a wrapping sequence counter.

## Installation

```
pip install respotcore
```

To run the tests:

```
pip install "respotcore[test]"
pytest
```

## Examples

Identifiers:

```python
from respotcore.spotify_id import SpotifyId, SpotifyAudioType

track = SpotifyId.from_uri("spotify:track:5sWHDYs0csV6RS48xBl0tH")
print(track.to_base16())   # b39fe8081e1f4c54be38e8d6f9f12bb9
print(track.audio_type is SpotifyAudioType.TRACK)   # True
print(track.to_uri())      # spotify:track:5sWHDYs0csV6RS48xBl0tH
```

Credentials and the cache:

```python
from respotcore.authentication import Credentials
from respotcore.cache import Cache

password = "password"
creds = Credentials.with_password("listener", password)

cache = Cache("state/credentials", "state/volume", "state/audio", size_limit=50_000_000)
cache.save_credentials(creds)
assert cache.credentials() == creds
cache.save_volume(32768)
assert cache.volume() == 32768
```

Device types:

```python
from respotcore.config import ConnectConfig, DeviceType

print(DeviceType.parse("speaker"))       # Speaker
print(ConnectConfig().initial_volume)    # 50
```

Advertise the device and wait for a client to send credentials:

```python
import asyncio

from respotcore.config import DeviceType
from respotcore.discovery import Discovery


async def main():
    discovery = await (
        Discovery.builder("example-device-id")
        .name("Kitchen")
        .device_type(DeviceType.SPEAKER)
        .launch()
    )
    async with discovery:
        print("listening on port", discovery.port)
        async for credentials in discovery:
            print("received credentials for", credentials.username)
            break


asyncio.run(main())
```

## What it does not do

The package does not connect to or log in to access points. It has no
encrypted connection, no session object and no request/response messaging on
top of a session. `ChannelManager` handles packets only when the caller passes
them in through `dispatch`. It does not request audio decryption keys, fetch
metadata or play audio. It provides no command-line program.