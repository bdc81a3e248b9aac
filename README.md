# webapp

A small HTTP server library with no dependencies outside the standard
library. A listener accepts TCP connections and hands each one to a pooled
connection handler that serves it in its own thread. Requests are parsed
(URL parameters, URL-encoded form bodies, cookies and `multipart/form-data`
uploads) and passed to your request handler, which writes the response.

## What is in it

- `webapp.settings.Settings` — a flat group of key/value settings, given as
  a mapping or read from one group of an INI file with
  `Settings.from_ini(path, group)`. `resolve_path` makes relative paths
  absolute against the directory of that file. `library_version()` returns
  the library version.
- `webapp.listener.HttpListener` — binds to the `host` and `port` settings
  when constructed (a bind failure raises `OSError`), accepts connections in
  a background thread and gives each to a free handler from the pool, or
  answers `503 too many connections` when none is free. `close()` stops it,
  `listen()` starts it again; it also works as a context manager.
- `webapp.pool.HttpConnectionHandlerPool` — creates connection handlers on
  demand up to `maxThreads`, and every `cleanupInterval` milliseconds closes
  at most one idle handler beyond `minThreads`. `load_ssl_context(settings)`
  builds a TLS server context from `sslKeyFile`, `sslCertFile`, the optional
  `caCertFile` and `verifyPeer`; with a key and certificate configured the
  listener serves HTTPS only.
- `webapp.connection.HttpConnectionHandler` — reads requests from one
  connection (several in a row are served one after the other), calls the
  request handler, and closes the connection after `Connection: close`,
  HTTP/1.0 requests, responses without a length or chunked encoding, or a
  read timeout (`readTimeout`, milliseconds). Requests over the size limits
  get `413 entity too large`.
- `webapp.request.HttpRequest` — the request parser, limited by
  `maxRequestSize` and `maxMultiPartSize`. It gives the method, decoded
  `path`, `raw_path`, version, `body`, headers (case-insensitive),
  parameters, cookies and uploaded files (`uploaded_file(field_name)`).
  `url_decode` decodes `+` and `%xx`.
- `webapp.response.HttpResponse` — status, headers and cookies are sent
  before the first body data. A single `write(data, True)` sets
  `Content-Length`; otherwise, without `Content-Length` or
  `Connection: close`, chunked transfer encoding is used. `redirect(url)`
  sends a 303.
- `webapp.cookie.HttpCookie` — `HttpCookie.parse` and `to_bytes`, with
  `Max-Age`, `Path`, `Domain`, `Comment`, `Secure`, `HttpOnly` and
  `SameSite`; `split_csv` splits on semicolons outside double quotes.
- `webapp.session.HttpSession` and `webapp.sessionstore.HttpSessionStore` —
  thread-safe session data tracked by a session cookie (`cookieName`,
  default `sessionid`). Sessions expire after `expirationTime` milliseconds;
  `remove_expired()` deletes them, and `start()` runs that every minute in
  the background. Callbacks in `on_session_deleted` are told of deletions.
- `webapp.staticfiles.StaticFileController` — serves files below the `path`
  setting with a small in-memory cache (`cacheTime`, `cacheSize`,
  `maxCachedFileSize`) and a browser `Cache-Control` from `maxAge`. Paths
  containing `/..` get 403, missing files 404.
- `webapp.handler.HttpRequestHandler` — the base class; its `service`
  answers `501 not implemented`.
- `webapp.demo` — example handlers: `DumpController`, `FormController`,
  `FileUploadController`, `SessionController` (takes an `HttpSessionStore`)
  and `HelloWorldHandler`.

## Installing

```
pip install .
```

## Writing a handler

Subclass `HttpRequestHandler` and override `service`:

```python
from webapp.handler import HttpRequestHandler
from webapp.listener import HttpListener
from webapp.settings import Settings


class Hello(HttpRequestHandler):
    def service(self, request, response):
        response.set_header(b"Content-Type", b"text/plain")
        response.write(b"Hello", True)


settings = Settings({"port": "8080", "minThreads": "4", "maxThreads": "100"})
with HttpListener(settings, Hello()):
    ...  # serving until the block ends
```

The handler is shared by all connection threads, so `service` must be
thread safe. To route different paths to different handlers, write a
handler that looks at `request.path` and calls the one it wants.

## Trying it out

A hello-world server is included:

```
webapp-hello
```

It listens on port 8080 (change with `--port`, bind to one address with
`--host`) and answers every request with a short HTML page until
interrupted.

## What it does not do

There is no template engine and no logging to files; messages go through
the standard `logging` module. The `webapp-hello` command serves only its
fixed page and reads no configuration file.

## Running the tests

```
pip install .[test]
pytest
```