# treasurenet

A two-player treasure hunt played across a network cable. One machine runs
the **server**, which hides eight numbered treasures on an 8×8 board; the
other runs the **client**, where a player walks the board with the keys `w`,
`a`, `s` and `d`. When the player steps onto a treasure, the server sends
that treasure's file to the client over a small framed protocol on a raw
packet socket. The game ends once every square has been visited.

## Requirements

- Linux (the game uses `AF_PACKET` raw sockets)
- Root privileges, or the `CAP_NET_RAW` capability
- Python 3.10 or later

## Installation

```
pip install .
```

## Playing

On the server machine, put the treasure files in `./objetos/`, named
`1.jpg`, `2.mp4`, `3.txt` and so on. Treasures are numbered 1 to 8, and each
can be a `.jpg`, `.mp4` or `.txt` file; if several files exist for one
number, the last of `jpg`, `mp4`, `txt` that can be read is used. Then start
the server with the network interface that connects the two machines:

```
sudo treasurenet -s eth0
```

On the client machine, start the client:

```
sudo treasurenet -c eth0
```

Options:

| Option             | Meaning                                        | Default      |
|--------------------|------------------------------------------------|--------------|
| `-c` / `-s`        | play as the explorer / host the treasures      | required     |
| `interface`        | network interface to use                       | required     |
| `--treasures-dir`  | where the server finds treasure files          | `./objetos`  |
| `--download-dir`   | where the client stores received treasures     | `./tesouro`  |

The player begins in the bottom-left corner. Enter `w` (up), `a` (left),
`s` (down) or `d` (right) and press Enter; other input is ignored and moves
into the edge of the board stay in place. Visited squares show `*` and the
player shows `P`. Each treasure found is saved in the download directory,
which is created if needed; before accepting a file the client checks that
there is enough free disk space there. Ending input (Ctrl-D) stops the
client.

If the raw socket cannot be created or configured, the command prints an
error and exits with status 1.

## Protocol

Every frame is 132 bytes long:

| Byte | Field                                                      |
|------|------------------------------------------------------------|
| 0    | start marker `0x7E`                                        |
| 1    | data length (0–127)                                        |
| 2    | sequence number (0–31)                                     |
| 3    | message type (0–15)                                        |
| 4    | checksum (sum of bytes 1–3 and the data, modulo 256)       |
| 5…   | data, zero-padded                                          |

A round runs as follows: the client sends a move; the server answers `OK`
carrying the treasure number (0 for none). For a treasure, the server then
sends `SIZE` (8-byte little-endian file size), `DATA` (the file name), the
file contents as `TEXT` chunks of up to 127 bytes with sequence numbers
modulo 32, and finally `END_OF_FILE`. Each message waits for an `ACK`. The
client answers `SIZE` with an `ERROR` (no space) if the file would not fit,
and the server answers a missing treasure file with an `ERROR` (no access).

A message is sent again if no reply arrives within two seconds. A frame
with a bad checksum is answered with a `NACK`, and a `NACK` is answered by
sending the last message again. Frames that do not follow the layout are
ignored.

## Library use

- `treasurenet.protocol`: `Message` (with `encode()` and `decode()`),
  `MessageType`, `ErrorCode`, `compute_checksum`, `validate_frame`,
  `send_message`, `receive_message`, and the exceptions `ProtocolError`,
  `InvalidMessageError`, `ChecksumError` and `ReceiveTimeout`.
- `treasurenet.board`: `Board`, `Position`, `Direction`, `Treasure` and
  `open_treasures`.
- `treasurenet.rawsocket`: `open_raw_socket(interface)`, raising
  `SocketSetupError` on failure.
- `treasurenet.client.ClientSession` and `treasurenet.server.ServerSession`
  run each side of the game over any connected socket object with `send`,
  `recv` and `settimeout`, which makes them usable over, for example, a
  `socket.socketpair()`.

## Limitations

- Only Linux raw packet sockets are supported by the command; frames are
  sent without an Ethernet header or addressing, so both machines should be
  on a dedicated link.
- Received files are only saved; the client does not open or display them.
- Every treasure file is sent as `TEXT` chunks regardless of its kind.