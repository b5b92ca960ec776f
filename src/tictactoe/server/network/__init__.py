"""
网络通信模块

处理 Socket 连接、按行收发、连接上限与断开清理。
每个连接一个线程，只在自己的 socket 上阻塞读取。
"""

from __future__ import annotations

import logging
import queue
import socket
import threading
import time
import uuid
from typing import Dict, Optional, Tuple

from tictactoe.server.orchestrator import SessionOrchestrator
from tictactoe.server.state import ServerState
from tictactoe.shared.constants import (
	BUFFER_SIZE,
	CLOSE_FLUSH_TIMEOUT,
	DEFAULT_HOST,
	DEFAULT_PORT,
	GAME_REAP_SECONDS,
	LISTEN_BACKLOG,
	MAX_CLIENTS,
	MAX_LINE_LENGTH,
	MSG_CONNECTED,
	MSG_ERROR,
	MSG_SERVER_INFO,
	OUTBOX_SIZE,
	STATS_INITIAL_DELAY,
	STATS_INTERVAL,
)
from tictactoe.shared.protocols import Message

logger = logging.getLogger(__name__)

SERVER_FULL_MESSAGE = "Server is full. Please try again later."
LINE_TOO_LONG_MESSAGE = "Line too long"


class LineTooLongError(Exception):
	"""客户端发送的单行超过 MAX_LINE_LENGTH"""


class ClientSession:
	"""客户端会话，封装连接、发送队列与写线程。

	send() 只把消息放入本连接的队列，由独立的写线程按顺序写入 socket，
	其他线程不会因为这个连接读得慢而阻塞。
	"""

	def __init__(
		self,
		conn: socket.socket,
		addr: Tuple[str, int],
		player_id: Optional[str] = None,
		outbox_size: int = OUTBOX_SIZE,
	):
		self.conn = conn
		self.addr = addr
		self.player_id = player_id or str(uuid.uuid4())
		self.orchestrator: Optional[SessionOrchestrator] = None
		self._recv_buffer = bytearray()
		self._outbox: "queue.Queue[Optional[bytes]]" = queue.Queue(maxsize=outbox_size)
		self._writer: Optional[threading.Thread] = None
		self._state_lock = threading.Lock()
		self._closed = False

	@property
	def closed(self) -> bool:
		with self._state_lock:
			return self._closed

	def mark_closed(self) -> bool:
		"""第一次调用返回 True，之后都返回 False"""
		with self._state_lock:
			if self._closed:
				return False
			self._closed = True
			return True

	def start(self) -> None:
		"""启动写线程"""
		self._writer = threading.Thread(target=self._write_loop, name=f"writer-{self.player_id[:8]}", daemon=True)
		self._writer.start()

	def send(self, msg: Message) -> None:
		"""整行入队；同一连接上的消息保持先进先出"""
		if self.closed:
			return
		data = (msg.to_line() + "\n").encode("utf-8")
		try:
			self._outbox.put_nowait(data)
		except queue.Full:
			# // 对端长期不读，断开它，由读线程统一清理
			logger.warning(f"玩家 {self.player_id} 发送队列已满，断开连接")
			self.shutdown()

	def _write_loop(self) -> None:
		while True:
			data = self._outbox.get()
			if data is None:
				break
			try:
				self.conn.sendall(data)
			except OSError:
				# // 交给读线程发现 EOF 后统一清理
				self.shutdown()
				break

	def read_lines(self, data: bytes):
		"""把收到的字节追加到缓冲区，产出完整的行；超长时抛出 LineTooLongError"""
		self._recv_buffer.extend(data)
		while True:
			try:
				idx = self._recv_buffer.index(ord("\n"))
			except ValueError:
				break
			if idx > MAX_LINE_LENGTH:
				raise LineTooLongError()
			raw = bytes(self._recv_buffer[:idx])
			del self._recv_buffer[: idx + 1]
			yield raw.decode("utf-8", errors="replace").rstrip("\r")
		if len(self._recv_buffer) > MAX_LINE_LENGTH:
			raise LineTooLongError()

	def shutdown(self) -> None:
		try:
			self.conn.shutdown(socket.SHUT_RDWR)
		except OSError:
			pass

	def close(self) -> None:
		"""尽量把队列中剩余消息发完，再关闭 socket"""
		writer = self._writer
		if writer is not None and writer is not threading.current_thread():
			try:
				self._outbox.put_nowait(None)
			except queue.Full:
				pass
			writer.join(timeout=CLOSE_FLUSH_TIMEOUT)
		self.shutdown()
		try:
			self.conn.close()
		except OSError:
			pass


class NetworkServer:
	"""网络服务器，负责接入、会话线程与后台维护"""

	def __init__(
		self,
		host: str = DEFAULT_HOST,
		port: int = DEFAULT_PORT,
		max_clients: int = MAX_CLIENTS,
		stats_interval: float = STATS_INTERVAL,
		reap_after: float = GAME_REAP_SECONDS,
		outbox_size: int = OUTBOX_SIZE,
		state: Optional[ServerState] = None,
	):
		self.host = host
		self.port = port
		self.max_clients = max_clients
		self.stats_interval = stats_interval
		self.outbox_size = outbox_size
		self.state = state or ServerState(reap_after=reap_after)
		self._sock: Optional[socket.socket] = None
		self._accept_thread: Optional[threading.Thread] = None
		self._maintenance_thread: Optional[threading.Thread] = None
		self._running = threading.Event()
		self._stopped = threading.Event()
		self.sessions: Dict[str, ClientSession] = {}
		self._sessions_lock = threading.Lock()

	# 服务器生命周期
	def start(self) -> None:
		"""绑定端口并启动 Accept 线程与维护线程"""
		self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		# // 允许快速重启服务
		self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		self._sock.bind((self.host, self.port))
		self._sock.listen(LISTEN_BACKLOG)
		# // port=0 时取系统分配的端口
		self.port = self._sock.getsockname()[1]
		self._running.set()
		self._stopped.clear()
		self._accept_thread = threading.Thread(target=self._accept_loop, name="accept-loop", daemon=True)
		self._accept_thread.start()
		self._maintenance_thread = threading.Thread(target=self._maintenance_loop, name="maintenance", daemon=True)
		self._maintenance_thread.start()
		logger.info(f"服务器已启动，监听 {self.host}:{self.port}")

	def stop(self) -> None:
		"""停止服务器并关闭所有会话"""
		self._running.clear()
		self._stopped.set()
		try:
			if self._sock:
				# // 触发 accept 退出
				try:
					self._sock.shutdown(socket.SHUT_RDWR)
				except OSError:
					pass
				self._sock.close()
		finally:
			self._sock = None
		with self._sessions_lock:
			sessions = list(self.sessions.values())
		for sess in sessions:
			self._on_disconnect(sess)

	# 接入与会话线程
	def _accept_loop(self) -> None:
		"""Accept 新连接；达到上限时回复错误并关闭"""
		while self._running.is_set():
			try:
				conn, addr = self._sock.accept()  # type: ignore[union-attr]
			except OSError:
				# // 套接字已关闭或出错，退出循环
				break
			logger.info(f"新连接: {addr[0]}:{addr[1]}")
			if not self.state.stats.try_acquire_connection(self.max_clients):
				logger.warning(f"服务器已满，拒绝连接: {addr[0]}")
				self._reject(conn)
				continue
			sess = ClientSession(conn, addr, outbox_size=self.outbox_size)
			sess.start()
			with self._sessions_lock:
				self.sessions[sess.player_id] = sess
			t = threading.Thread(target=self._session_loop, args=(sess,), name=f"session-{sess.player_id[:8]}", daemon=True)
			t.start()

	def _reject(self, conn: socket.socket) -> None:
		try:
			conn.sendall((Message(MSG_ERROR, SERVER_FULL_MESSAGE).to_line() + "\n").encode("utf-8"))
		except OSError:
			pass
		finally:
			conn.close()

	def _open_session(self, sess: ClientSession) -> None:
		"""注册玩家、加入默认大厅并推送欢迎信息"""
		sess.orchestrator = SessionOrchestrator(
			self.state, sess.player_id, sess.send, on_quit=lambda: self._on_disconnect(sess)
		)
		sess.send(Message.build(MSG_CONNECTED, sess.player_id))
		sess.send(Message(MSG_SERVER_INFO, f"Welcome to Tic Tac Toe Server! Server time: {time.ctime()}"))
		self.state.add_player(sess.player_id, sess)
		sess.orchestrator.send_lobby_welcome(self.state.default_lobby)

	def _session_loop(self, sess: ClientSession) -> None:
		"""单会话收发循环：按行读取命令并分发"""
		conn = sess.conn
		try:
			self._open_session(sess)
			while self._running.is_set() and not sess.closed:
				data = conn.recv(BUFFER_SIZE)
				if not data:
					break
				for line in sess.read_lines(data):
					if not line:
						continue
					sess.orchestrator.dispatch(line)
					if sess.closed:
						break
		except LineTooLongError:
			logger.warning(f"玩家 {sess.player_id} 发送的命令超过 {MAX_LINE_LENGTH} 字节，断开连接")
			sess.send(Message(MSG_ERROR, LINE_TOO_LONG_MESSAGE))
		except OSError as e:
			logger.info(f"与玩家 {sess.player_id} 的连接中断: {e}")
		except Exception:
			logger.error(f"会话 {sess.player_id} 异常", exc_info=True)
		finally:
			self._on_disconnect(sess)

	# 断开清理
	def _on_disconnect(self, sess: ClientSession) -> None:
		"""断开清理只执行一次；QUIT 与读错误同时发生时也只生效一次"""
		if not sess.mark_closed():
			return
		try:
			self.state.remove_player(sess.player_id)
		finally:
			sess.close()
			with self._sessions_lock:
				self.sessions.pop(sess.player_id, None)
			self.state.stats.release_connection()

	# 后台维护
	def _maintenance_loop(self) -> None:
		"""定期输出统计并清理已结束的对局"""
		delay = min(STATS_INITIAL_DELAY, self.stats_interval)
		while not self._stopped.wait(delay):
			try:
				logger.info(self.state.stats_report())
				self.state.reap_finished_games()
			except Exception:
				logger.error("维护任务出错", exc_info=True)
			delay = self.stats_interval


__all__ = [
	"ClientSession",
	"LINE_TOO_LONG_MESSAGE",
	"LineTooLongError",
	"NetworkServer",
	"SERVER_FULL_MESSAGE",
]
