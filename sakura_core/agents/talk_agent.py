"""Talk 任务编排。

一次 talk 从用户 prompt 出发，最终把模型的完整回答发布到平台消息上：

1. 先发布引用后的 prompt 加 "..."，在打开上游流之前就给用户反馈；
2. 启动心跳，按固定间隔发布“仍在生成”的中间文本（以 "(...)" 结尾）；
3. 消费上游增量事件，累积主 choice 的文本；
4. 正常结束：停止心跳，再发布一次不带标记的最终文本；
5. 中途失败：停止心跳并抛出（日志由 run_talk_task 记录），不再发布最终文本，
   用户看到的是最后一次心跳的内容。

状态机：NOT_STARTED -> ACKNOWLEDGED -> STREAMING -> {COMPLETED | FAILED}。

心跳与流消费是两个独立调度的协程。停止心跳只表示“不再开始新的 tick”，
已经在发布中的 tick 不会被打断，因此它可能晚于最终文本到达。
accumulated_text 只由流消费协程写入、由心跳读取（asyncio 单线程调度）。
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional, Sequence

from sakura_core.domain.exceptions import BusinessError
from sakura_core.domain.models import ChatMessage, ChatRequest, ContentPart
from sakura_core.infrastructure.logging.logger import logger
from sakura_core.providers.base import StreamingProvider


PublishCallback = Callable[[str], Awaitable[None]]

QUOTE_MARKER = "> "
ACK_SUFFIX = "\n..."
HEARTBEAT_SUFFIX = "(...)"


def quote_prompt(prompt: str) -> str:
    """给 prompt 的每一行加上引用标记。"""

    return "\n".join(QUOTE_MARKER + line for line in prompt.split("\n"))


class TalkState(str, Enum):
    NOT_STARTED = "not_started"
    ACKNOWLEDGED = "acknowledged"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TalkSession:
    """单次 talk 的运行状态，只归一个 TalkAgent.run 调用所有。"""

    quoted_prompt: str
    accumulated_text: str = ""
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: TalkState = TalkState.NOT_STARTED
    # 当前所处步骤：acknowledge -> stream -> final_publish -> done
    stage: str = "acknowledge"

    def acknowledgement_text(self) -> str:
        return self.quoted_prompt + ACK_SUFFIX

    def heartbeat_text(self) -> str:
        return f"{self.quoted_prompt}\n\n{self.accumulated_text}{HEARTBEAT_SUFFIX}"

    def final_text(self) -> str:
        return f"{self.quoted_prompt}\n\n{self.accumulated_text}"


class Heartbeat:
    """按固定间隔调用 tick 的后台协程句柄。

    stop() 只请求后续 tick 不再开始；wait_closed() 等待后台协程退出
    （包括可能仍在进行的最后一次 tick）。tick 抛出的异常只记录日志。
    """

    def __init__(self, interval: float, tick: Callable[[], Awaitable[None]]):
        self._interval = interval
        self._tick = tick
        self._stopped = asyncio.Event()
        self._task: Optional["asyncio.Task[None]"] = None
        self.ticks = 0

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())

    def stop(self) -> None:
        self._stopped.set()

    async def wait_closed(self) -> None:
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self._interval)
                return
            except asyncio.TimeoutError:
                pass
            if self._stopped.is_set():
                return
            self.ticks += 1
            try:
                await self._tick()
            except Exception as e:
                logger.warning(f"Heartbeat publish failed: {e}", extra={"extra": {"tick": self.ticks}})


class TalkAgent:
    """把一次 prompt 驱动到最终发布文本的编排器。

    Usage:
        agent = TalkAgent(create_provider(), model="talk")
        session = await agent.run("hello", publish)
    """

    def __init__(
        self,
        provider: StreamingProvider,
        *,
        model: str,
        system_prompt: Optional[str] = None,
        heartbeat_interval: float = 0.5,
    ):
        self._provider = provider
        self._model = model
        self._system_prompt = system_prompt
        self._heartbeat_interval = heartbeat_interval

    def new_session(self, prompt: str) -> TalkSession:
        return TalkSession(quoted_prompt=quote_prompt(prompt))

    def build_request(self, prompt: str, image_urls: Sequence[str] = ()) -> ChatRequest:
        messages = []
        if self._system_prompt:
            messages.append(ChatMessage(role="system", content=self._system_prompt))
        parts = [ContentPart.of_text(prompt)]
        parts.extend(ContentPart.of_image(url) for url in image_urls)
        messages.append(ChatMessage(role="user", content=parts))
        return ChatRequest(model=self._model, messages=messages)

    async def run(
        self,
        prompt: str,
        publish: PublishCallback,
        *,
        image_urls: Sequence[str] = (),
        session: Optional[TalkSession] = None,
    ) -> TalkSession:
        """执行一次 talk。

        失败时停止心跳、把状态置为 FAILED 并原样抛出；日志由调用方（run_talk_task）记录，
        session.stage 标明失败发生在哪一步。
        """

        session = session or self.new_session(prompt)
        log_ctx = {"provider": self._provider.name, "model": self._model}

        await publish(session.acknowledgement_text())
        session.state = TalkState.ACKNOWLEDGED

        async def tick() -> None:
            await publish(session.heartbeat_text())

        heartbeat = Heartbeat(self._heartbeat_interval, tick)
        heartbeat.start()
        try:
            request = self.build_request(prompt, image_urls)
            session.state = TalkState.STREAMING
            session.stage = "stream"
            async for event in self._provider.chat_stream(request):
                session.accumulated_text += event.text
            heartbeat.stop()
            session.stage = "final_publish"
            await publish(session.final_text())
            session.state = TalkState.COMPLETED
            session.stage = "done"
        except Exception:
            heartbeat.stop()
            session.state = TalkState.FAILED
            raise
        finally:
            heartbeat.stop()
            await heartbeat.wait_closed()

        elapsed = (datetime.now(timezone.utc) - session.started_at).total_seconds()
        logger.info(
            "Talk completed",
            extra={"extra": {**log_ctx, "elapsed_s": round(elapsed, 3), "chars": len(session.accumulated_text), "ticks": heartbeat.ticks}},
        )
        return session


async def run_talk_task(
    agent: TalkAgent,
    prompt: str,
    publish: PublishCallback,
    *,
    image_urls: Sequence[str] = (),
    interaction_id: Optional[str] = None,
) -> Optional[TalkSession]:
    """后台任务边界：吞掉并记录所有异常，保证服务进程不受影响。

    每次失败只在这里记录一条日志，stage 区分是哪一步失败（确认、流、最终发布）。
    """

    session = agent.new_session(prompt)
    try:
        return await agent.run(prompt, publish, image_urls=image_urls, session=session)
    except BusinessError as e:
        logger.error(
            f"Talk task failed at {session.stage}: {e.message}",
            extra={"extra": {**_failure_ctx(session, interaction_id), "code": e.code, "http_status": e.http_status}},
        )
    except Exception as e:
        logger.exception(f"Talk task crashed at {session.stage}: {e}", extra={"extra": _failure_ctx(session, interaction_id)})
    return None


def _failure_ctx(session: TalkSession, interaction_id: Optional[str]) -> dict:
    elapsed = (datetime.now(timezone.utc) - session.started_at).total_seconds()
    return {
        "interaction_id": interaction_id,
        "stage": session.stage,
        "elapsed_s": round(elapsed, 3),
        "chars": len(session.accumulated_text),
    }
