"""FastAPI application entrypoint."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles

from feedkeeper.api.routes import ChannelCache, router
from feedkeeper.config import AppConfig, Settings, load_or_create_config
from feedkeeper.services.assets import IMAGE_URL_PREFIX
from feedkeeper.services.store import ArticleStore

INDEX_HTML = """
<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>feedkeeper</title>
    <style>
      :root {
        color-scheme: light;
        font-family: system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
        --bg: #f6f1e5;
        --panel: #fff8ef;
        --accent: #b4532a;
        --muted: #7a6a58;
        background: var(--bg);
        color: #2f2419;
      }

      body {
        margin: 0;
        min-height: 100vh;
      }

      .layout {
        display: grid;
        grid-template-columns: 240px 340px 1fr;
        min-height: 100vh;
      }

      .column {
        padding: 24px;
        overflow-y: auto;
        max-height: 100vh;
        box-sizing: border-box;
      }

      .column + .column {
        border-left: 1px solid rgba(122, 106, 88, 0.2);
      }

      h1 {
        margin: 0 0 16px;
        font-size: 1.4rem;
        color: var(--accent);
      }

      ul {
        list-style: none;
        margin: 0;
        padding: 0;
        display: grid;
        gap: 6px;
      }

      li button {
        width: 100%;
        text-align: left;
        border: none;
        border-radius: 10px;
        padding: 10px 12px;
        background: var(--panel);
        cursor: pointer;
        font: inherit;
      }

      li button.active {
        background: var(--accent);
        color: white;
      }

      .meta {
        color: var(--muted);
        font-size: 0.85rem;
      }

      article img {
        max-width: 100%;
      }

      .status {
        color: var(--muted);
      }
    </style>
  </head>
  <body>
    <div class="layout">
      <nav class="column">
        <h1>Feeds</h1>
        <ul id="feeds"></ul>
      </nav>
      <section class="column">
        <h1 id="feed-title">Items</h1>
        <p class="status" id="feed-status"></p>
        <ul id="items"></ul>
      </section>
      <main class="column">
        <article id="article"><p class="status">Select an item to read it.</p></article>
      </main>
    </div>
    <script>
      const feedsEl = document.getElementById("feeds");
      const itemsEl = document.getElementById("items");
      const articleEl = document.getElementById("article");
      const feedTitleEl = document.getElementById("feed-title");
      const feedStatusEl = document.getElementById("feed-status");

      function markActive(list, button) {
        list.querySelectorAll("button").forEach((el) => el.classList.remove("active"));
        button.classList.add("active");
      }

      async function loadItem(feedIndex, itemIndex) {
        const response = await fetch(`/api/feeds/${feedIndex}/items/${itemIndex}`);
        if (!response.ok) {
          const status = document.createElement("p");
          status.className = "status";
          status.textContent = (await response.json()).detail;
          articleEl.replaceChildren(status);
          return;
        }
        const item = await response.json();
        const heading = document.createElement("h2");
        heading.textContent = item.title;
        const meta = document.createElement("p");
        meta.className = "meta";
        meta.textContent = item.pub_date || "";
        if (item.link && /^https?:/i.test(item.link)) {
          const link = document.createElement("a");
          link.href = item.link;
          link.target = "_blank";
          link.rel = "noopener";
          link.textContent = "Original";
          meta.append(" ", link);
        }
        const body = document.createElement("div");
        body.innerHTML = item.content_html;
        articleEl.replaceChildren(heading, meta, body);
      }

      async function loadFeed(feedIndex) {
        feedStatusEl.textContent = "Loading...";
        itemsEl.innerHTML = "";
        const response = await fetch(`/api/feeds/${feedIndex}`);
        const payload = await response.json();
        if (!response.ok) {
          feedStatusEl.textContent = payload.detail;
          return;
        }
        feedTitleEl.textContent = payload.title || "Items";
        feedStatusEl.textContent = payload.description || "";
        payload.items.forEach((item) => {
          const li = document.createElement("li");
          const button = document.createElement("button");
          const date = document.createElement("div");
          date.className = "meta";
          date.textContent = item.pub_date || "";
          button.append(item.title, date);
          button.addEventListener("click", () => {
            markActive(itemsEl, button);
            loadItem(feedIndex, item.id);
          });
          li.appendChild(button);
          itemsEl.appendChild(li);
        });
      }

      async function loadFeeds() {
        const response = await fetch("/api/feeds");
        const feeds = await response.json();
        feeds.forEach((feed, index) => {
          const li = document.createElement("li");
          const button = document.createElement("button");
          button.textContent = feed.name;
          button.addEventListener("click", () => {
            markActive(feedsEl, button);
            loadFeed(index);
          });
          li.appendChild(button);
          feedsEl.appendChild(li);
        });
      }

      loadFeeds();
    </script>
  </body>
</html>
"""


def create_app(
    config: AppConfig | None = None,
    store: ArticleStore | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    settings = settings or Settings.from_environment()
    config = config or load_or_create_config(settings.config_path)
    store = store or ArticleStore.initialize(settings.store_dir, image_timeout=settings.image_timeout)

    app = FastAPI(title="feedkeeper", description="Feed reader with a local article store")
    app.state.settings = settings
    app.state.feeds = config.all_feeds()
    app.state.store = store
    app.state.channel_cache = ChannelCache()

    app.include_router(router, prefix="/api")
    app.mount(IMAGE_URL_PREFIX, StaticFiles(directory=store.image_dir), name="images")

    @app.get("/", response_class=HTMLResponse)
    async def index() -> str:
        return INDEX_HTML

    return app
