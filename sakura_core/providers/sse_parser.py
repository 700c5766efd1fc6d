"""上游事件流解析。

上游使用 Server-Sent Events 风格的分帧约定：

- 每条事件是一行 ``data: {...json...}``，行与行之间用换行分隔；
- 中间可以夹杂空行（keep-alive）和以 ``:`` 开头的注释行；
- 流以字面量 ``data: [DONE]`` 结束，连接关闭不一定紧跟在最后一条事件之后。

网络层交付的字节块与事件边界没有任何对齐关系：一个块可能包含多条事件，
也可能在一行、甚至一个 UTF-8 字符的中间被切开。本模块把这样的字节流
转换成惰性的 ChatDeltaEvent 序列。
"""

import codecs
import json
import re
from typing import AsyncIterator

from sakura_core.domain.exceptions import ApiError, StreamFramingError
from sakura_core.domain.models import ChatDeltaEvent


DATA_MARKER = "data:"
DONE_SENTINEL = "[DONE]"
COMMENT_PREFIX = ":"
# 只按 SSE 行结束符断行，U+2028、U+0085 等字符可以原样出现在 JSON 字符串里
LINE_BREAK = re.compile(r"\r\n|\r|\n")


def parse_event(payload: str) -> ChatDeltaEvent:
    """把一条 data 负载解析为 ChatDeltaEvent。

    JSON 非法或结构不符时抛 StreamFramingError；负载是上游在流中途
    报告的 error 对象时抛 ApiError。
    """

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise StreamFramingError(code="MALFORMED_EVENT", message=f"malformed event payload: {e.msg}", payload=payload[:200])
    if not isinstance(data, dict):
        raise StreamFramingError(code="MALFORMED_EVENT", message="event payload is not a JSON object", payload=payload[:200])

    error = data.get("error")
    if error:
        detail = error.get("message") if isinstance(error, dict) else str(error)
        raise ApiError(code="UPSTREAM_STREAM_ERROR", message=detail or "upstream reported an error", http_status=502)

    try:
        return ChatDeltaEvent.from_payload(data)
    except (AttributeError, TypeError) as e:
        raise StreamFramingError(code="MALFORMED_EVENT", message=f"unexpected event shape: {e}", payload=payload[:200])


def _frame_candidates(frame: str) -> list[str]:
    """把一帧拆成若干 data 负载，丢弃空行与注释行。"""

    candidates = []
    for raw_line in LINE_BREAK.split(frame):
        line = raw_line.strip(" \t")
        if not line or line.startswith(COMMENT_PREFIX):
            continue
        if not line.startswith(DATA_MARKER):
            raise StreamFramingError(code="MISSING_DATA_MARKER", message="stream line without data marker", line=line[:200])
        payload = line[len(DATA_MARKER):].strip()
        if payload:
            candidates.append(payload)
    return candidates


async def iter_chat_events(chunks: AsyncIterator[bytes]) -> AsyncIterator[ChatDeltaEvent]:
    """逐帧读取字节流并产出 ChatDeltaEvent。

    - 缓冲区以换行结尾，或源已耗尽时，视为一帧结束。
    - 遇到 [DONE] 立即结束，同一帧中后续的行不再解析。
    - 无论正常结束还是被调用方提前放弃，都会关闭底层字节源。
    """

    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    source = chunks.__aiter__()
    finished = False
    try:
        while not finished:
            frame = ""
            while True:
                try:
                    chunk = await source.__anext__()
                except StopAsyncIteration:
                    frame += decoder.decode(b"", final=True)
                    finished = True
                    break
                frame += decoder.decode(chunk)
                if frame.endswith("\n"):
                    break

            for candidate in _frame_candidates(frame):
                if candidate == DONE_SENTINEL:
                    return
                yield parse_event(candidate)
    finally:
        aclose = getattr(source, "aclose", None)
        if aclose is not None:
            await aclose()
