import io
import random
import socket
import threading

import pytest

from treasurenet.board import Position, Treasure, open_treasures
from treasurenet.client import ClientSession
from treasurenet.protocol import FRAME_SIZE, ErrorCode, Message, MessageType
from treasurenet.server import ServerSession

ACK = Message(MessageType.ACK)


def make_session(tmp_path, content=b"hello treasure", treasures=None, sock=None):
    if treasures is None:
        (tmp_path / "1.txt").write_bytes(content)
        treasures = open_treasures(tmp_path, 1)
    session = ServerSession(
        sock,
        treasures=treasures,
        treasure_count=0,
        out=io.StringIO(),
        pause=0,
        clear=False,
    )
    session.board.cells[7][1] = "1"
    return session


def collect_transfer(session):
    replies = [session.handle(Message(MessageType.MOVE_RIGHT))]
    while replies[-1].kind is not MessageType.END_OF_FILE:
        replies.append(session.handle(ACK))
    return replies


def test_move_onto_treasure_reports_it(tmp_path):
    session = make_session(tmp_path)
    reply = session.handle(Message(MessageType.MOVE_RIGHT))
    assert reply == Message(MessageType.OK, b"\x01")
    assert session.position == Position(7, 1)
    assert session.board.cells[7][0] == "*"
    assert session.board.cells[7][1] == "P"


def test_move_without_treasure_ends_round(tmp_path):
    session = make_session(tmp_path)
    assert session.handle(Message(MessageType.MOVE_UP)) == Message(MessageType.OK, b"\x00")
    assert session.handle(ACK).kind is MessageType.END_OF_FILE


def test_full_transfer_carries_size_name_and_content(tmp_path):
    content = bytes(range(256)) * 2
    session = make_session(tmp_path, content)
    replies = collect_transfer(session)
    kinds = [r.kind for r in replies]
    assert kinds[:3] == [MessageType.OK, MessageType.SIZE, MessageType.DATA]
    assert int.from_bytes(replies[1].data, "little") == len(content)
    assert replies[2].data == b"1.txt"
    chunks = [r for r in replies if r.is_file_chunk()]
    assert b"".join(c.data for c in chunks) == content
    assert all(len(c.data) <= 127 for c in chunks)


def test_sequence_numbers_wrap(tmp_path):
    content = bytes(range(200)) * 30
    session = make_session(tmp_path, content)
    chunks = [r for r in collect_transfer(session) if r.is_file_chunk()]
    assert len(chunks) > 32
    assert chunks[0].sequence == 0
    for before, after in zip(chunks, chunks[1:]):
        assert after.sequence == (before.sequence + 1) % 32
    assert b"".join(c.data for c in chunks) == content


def test_missing_treasure_file_sends_error(tmp_path):
    session = make_session(tmp_path, treasures=[Treasure(1)])
    session.handle(Message(MessageType.MOVE_RIGHT))
    reply = session.handle(ACK)
    assert reply == Message(MessageType.ERROR, bytes([ErrorCode.NO_ACCESS]))
    assert session.handle(ACK).kind is MessageType.END_OF_FILE


def test_client_without_space_ends_round(tmp_path):
    session = make_session(tmp_path)
    session.handle(Message(MessageType.MOVE_RIGHT))
    assert session.handle(ACK).kind is MessageType.SIZE
    reply = session.handle(Message(MessageType.ERROR, bytes([ErrorCode.NO_SPACE])))
    assert reply.kind is MessageType.END_OF_FILE


def test_nack_repeats_previous_reply(tmp_path):
    session = make_session(tmp_path)
    ok = session.handle(Message(MessageType.MOVE_RIGHT))
    assert session.handle(Message(MessageType.NACK)) == ok


def test_repeated_move_is_not_applied_twice(tmp_path):
    session = make_session(tmp_path)
    first = session.handle(Message(MessageType.MOVE_RIGHT))
    second = session.handle(Message(MessageType.MOVE_RIGHT))
    assert first == second
    assert session.position == Position(7, 1)


def test_move_off_board_is_clamped(tmp_path):
    session = make_session(tmp_path)
    reply = session.handle(Message(MessageType.MOVE_LEFT))
    assert session.position == Position(7, 0)
    assert reply == Message(MessageType.OK, b"\x00")


def test_late_ack_repeats_end_of_file(tmp_path):
    session = make_session(tmp_path)
    session.handle(Message(MessageType.MOVE_UP))
    end = session.handle(ACK)
    assert session.handle(ACK) == end


def _read_frames(sock, count):
    sock.settimeout(5)
    data = b""
    while len(data) < count * FRAME_SIZE:
        data += sock.recv(count * FRAME_SIZE - len(data))
    return [Message.decode(data[i:i + FRAME_SIZE]) for i in range(0, len(data), FRAME_SIZE)]


def test_run_round_answers_corrupt_frame_with_nack(tmp_path):
    server_sock, peer = socket.socketpair()
    with server_sock, peer:
        session = make_session(tmp_path, sock=server_sock)
        corrupt = bytearray(Message(MessageType.MOVE_UP).encode())
        corrupt[4] ^= 0xFF
        peer.sendall(bytes(corrupt))
        peer.sendall(Message(MessageType.MOVE_UP).encode())
        peer.sendall(ACK.encode())
        assert session.run_round() == 0
        kinds = [m.kind for m in _read_frames(peer, 3)]
        assert kinds == [MessageType.NACK, MessageType.OK, MessageType.END_OF_FILE]


def test_whole_game_between_client_and_server(tmp_path):
    objects = tmp_path / "objs"
    objects.mkdir()
    content = b"gold " * 100
    (objects / "1.txt").write_bytes(content)
    server_sock, client_sock = socket.socketpair()
    with server_sock, client_sock:
        server = ServerSession(
            server_sock,
            treasures_dir=objects,
            board_size=2,
            treasure_count=1,
            rng=random.Random(3),
            out=io.StringIO(),
            pause=0,
            clear=False,
        )
        client = ClientSession(
            client_sock,
            download_dir=tmp_path / "dl",
            board_size=2,
            free_space=lambda: 10**9,
            out=io.StringIO(),
            pause=0,
            clear=False,
        )
        results = {}

        def serve():
            results["found"] = server.run()

        thread = threading.Thread(target=serve, daemon=True)
        thread.start()
        moves = iter(["d", "w", "a"])
        collected = client.run(lambda: next(moves, None))
        thread.join(timeout=10)
        assert not thread.is_alive()
    assert results["found"] == [1]
    assert len(collected) == 1
    assert collected[0].read_bytes() == content