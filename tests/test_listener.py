# tests/test_listener.py
import contextlib
import io
import socket
import unittest

from listener import ListenerSetupError, create_listener


def occupied_port_with_free_successor():
    """Return a listening socket whose port P is taken while P + 1 is currently free."""
    for _ in range(50):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("", 0))
        blocker.listen(1)
        port = blocker.getsockname()[1]
        if port < 65535:
            spare = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            try:
                spare.bind(("", port + 1))
                return blocker
            except OSError:
                pass
            finally:
                spare.close()
        blocker.close()
    raise RuntimeError("could not find two consecutive ports")


class TestCreateListener(unittest.TestCase):
    def test_binds_preferred_port_when_free(self):
        with socket.socket() as spare:
            spare.bind(("", 0))
            port = spare.getsockname()[1]
        with contextlib.redirect_stdout(io.StringIO()) as out:
            listener = create_listener(port)
        with listener:
            self.assertEqual(listener.port, port)
            self.assertEqual(listener.backlog, 1)
            self.assertEqual(listener.sock.getsockname()[1], port)
        self.assertIn(f"Using port: {port}", out.getvalue())

    def test_falls_back_to_next_port(self):
        blocker = occupied_port_with_free_successor()
        taken = blocker.getsockname()[1]
        try:
            with contextlib.redirect_stdout(io.StringIO()) as out:
                listener = create_listener(taken)
            with listener:
                self.assertEqual(listener.port, taken + 1)
                self.assertIn(f"Using port: {taken + 1}", out.getvalue())
                with socket.create_connection(("127.0.0.1", listener.port), timeout=5):
                    conn, _ = listener.accept()
                    conn.close()
        finally:
            blocker.close()

    def test_attempt_cap_raises(self):
        blocker = occupied_port_with_free_successor()
        try:
            with self.assertRaises(ListenerSetupError):
                create_listener(blocker.getsockname()[1], max_attempts=1)
        finally:
            blocker.close()

    def test_close_is_idempotent(self):
        with contextlib.redirect_stdout(io.StringIO()):
            listener = create_listener(0)
        self.assertFalse(listener.closed)
        listener.close()
        listener.close()
        self.assertTrue(listener.closed)


if __name__ == "__main__":
    unittest.main()
