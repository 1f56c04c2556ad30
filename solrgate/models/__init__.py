"""solrgate models package.

Shared data contracts between the admission policy and the proxy handler:

  - verdict.py   — Verdict, Action, RejectReason (validator output)
  - responses.py — Response builders for HTTP 403 rejections and HTTP 502
                   upstream-unavailable errors
"""
