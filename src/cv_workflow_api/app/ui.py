from __future__ import annotations

from html import escape


def render_homepage(*, app_name: str, max_file_size: int) -> str:
    max_mb = max_file_size / (1024 * 1024)
    return (
        _PAGE.replace("__APP_NAME__", escape(app_name))
        .replace("__MAX_MB__", f"{max_mb:g}")
    )


_PAGE = """
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>__APP_NAME__</title>
  <style>
    :root {
      --bg: #f3efe6;
      --panel: #fffaf0;
      --ink: #112433;
      --muted: #5c6b74;
      --accent: #0f8b8d;
      --line: #d7d1c3;
      --warn: #b00020;
    }
    * { box-sizing: border-box; }
    body {
      margin: 0;
      min-height: 100vh;
      font-family: system-ui, sans-serif;
      color: var(--ink);
      background: var(--bg);
    }
    .wrap { max-width: 720px; margin: 32px auto; padding: 0 16px; display: grid; gap: 16px; }
    .card {
      background: var(--panel);
      border: 1px solid var(--line);
      border-radius: 16px;
      padding: 20px;
    }
    .title { margin: 0; font-size: 1.6rem; }
    .sub { margin: 6px 0 0; color: var(--muted); }
    input[type=file] { width: 100%; margin: 12px 0; }
    button {
      border: none;
      border-radius: 10px;
      padding: 10px 14px;
      font-weight: 700;
      cursor: pointer;
      background: var(--accent);
      color: #fff;
    }
    button:disabled { opacity: 0.5; cursor: wait; }
    .status { font-family: monospace; font-size: 0.9rem; }
    .error { color: var(--warn); }
  </style>
</head>
<body>
  <main class="wrap">
    <section class="card">
      <h1 class="title">CV Converter</h1>
      <p class="sub">
        Upload a PDF, DOC or DOCX CV (max __MAX_MB__ MB) to receive the formatted document.
      </p>
      <input id="cvInput" type="file" accept=".pdf,.doc,.docx">
      <button id="uploadBtn">Convert</button>
      <p class="status" id="statusText">Ready.</p>
      <p id="result"></p>
    </section>
  </main>

  <script>
    const cvInput = document.getElementById("cvInput");
    const uploadBtn = document.getElementById("uploadBtn");
    const statusText = document.getElementById("statusText");
    const result = document.getElementById("result");

    function setStatus(message, isError = false) {
      statusText.textContent = message;
      statusText.classList.toggle("error", isError);
    }

    function filenameFrom(response) {
      const header = response.headers.get("Content-Disposition") || "";
      const match = header.match(/filename="([^"]+)"/);
      return match ? match[1] : "cv.docx";
    }

    uploadBtn.addEventListener("click", async () => {
      const file = cvInput.files[0];
      if (!file) {
        setStatus("Choose a file first.", true);
        return;
      }
      const form = new FormData();
      form.append("cv", file);
      uploadBtn.disabled = true;
      result.textContent = "";
      setStatus("Processing... this can take a few minutes.");
      try {
        const response = await fetch("/api/cv/upload", { method: "POST", body: form });
        const contentType = response.headers.get("Content-Type") || "";
        if (contentType.includes("application/json")) {
          const data = await response.json();
          if (!response.ok || !data.success) {
            throw new Error(`${data.message} (${data.errorType})`);
          }
          const link = document.createElement("a");
          link.href = data.downloadUrl;
          link.textContent = `Download ${data.fileName}`;
          result.appendChild(link);
        } else {
          const blob = await response.blob();
          const link = document.createElement("a");
          link.href = URL.createObjectURL(blob);
          link.download = filenameFrom(response);
          link.textContent = `Download ${link.download}`;
          result.appendChild(link);
        }
        setStatus("Done.");
      } catch (err) {
        setStatus(String(err.message || err), true);
      } finally {
        uploadBtn.disabled = false;
      }
    });
  </script>
</body>
</html>
"""
