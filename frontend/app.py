import asyncio
import threading
import time

import streamlit as st

from config.settings import settings
from core.queue_client import JobClient
from core.reducer import ALERT_RETRY, AlertDismiss, AlertRetry, Submit, TextChanged
from core.store import Store
from frontend.view import render


class StoreRuntime:
    """Chạy Store trên một event loop riêng (thread nền), sống qua các lần rerun."""

    def __init__(self):
        self.loop = asyncio.new_event_loop()
        self.store: Store | None = None
        self._ready = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        self._ready.wait()

    def _run(self):
        asyncio.set_event_loop(self.loop)
        self.store = Store(JobClient())
        self.loop.create_task(self.store.run())
        self._ready.set()
        self.loop.run_forever()

    def dispatch(self, *actions, timeout: float = 5.0):
        """Gửi action vào store và chờ tới khi chúng được xử lý xong."""

        async def _send():
            for action in actions:
                self.store.send(action)
            await self.store.flush()

        asyncio.run_coroutine_threadsafe(_send(), self.loop).result(timeout=timeout)

    def view(self):
        return render(self.store.state)


@st.cache_resource
def get_runtime() -> StoreRuntime:
    return StoreRuntime()


# ==========================
# Cấu hình
# ==========================
st.set_page_config(
    page_title="Banana Image AI",
    page_icon="🎨",
    layout="wide"
)

st.title("🎨 Banana Image AI")
st.caption(f"Tạo ảnh từ mô tả với `{settings.FAL_MODEL}` 🖼️")

runtime = get_runtime()
view = runtime.view()

# ==========================
# Alert lỗi
# ==========================
if view["alert"]:
    st.error(view["alert"]["title"])
    cols = st.columns(len(view["alert"]["actions"]))
    for col, button in zip(cols, view["alert"]["actions"]):
        with col:
            if st.button(button["label"], key=f"alert_{button['action']}"):
                action = AlertRetry() if button["action"] == ALERT_RETRY else AlertDismiss()
                runtime.dispatch(action)
                st.rerun()

# ==========================
# Ô nhập prompt
# ==========================
with st.form("prompt_form", clear_on_submit=True):
    prompt = st.text_input(
        "💭 Mô tả ảnh",
        value=view["input_text"],
        disabled=view["input_disabled"],
    )
    submitted = st.form_submit_button("✨ Tạo ảnh", disabled=view["input_disabled"])

if submitted:
    runtime.dispatch(TextChanged(prompt), Submit())
    st.rerun()

# ==========================
# Trạng thái job
# ==========================
if view["status_label"]:
    with st.status(view["status_label"], expanded=bool(view["logs"])):
        for line in view["logs"]:
            st.text(line)
    if st.button("⏹️ Hủy"):
        # submit với ô nhập rỗng = hủy job
        runtime.dispatch(TextChanged(""), Submit())
        st.rerun()

# ==========================
# Lịch sử ảnh
# ==========================
for img in view["images"]:
    col1, col2, col3 = st.columns([1, 2, 1])
    with col2:
        st.image(img["url"], caption=img["file_name"], use_container_width=True)
        st.markdown(f"🔗 [Mở ảnh gốc]({img['url']})")

if view["input_disabled"]:
    time.sleep(settings.POLL_INTERVAL)
    st.rerun()
