import os
from datetime import datetime, timedelta, timezone
from urllib.parse import urlparse
from flask import Flask, request, redirect, abort, jsonify
from flask_sqlalchemy import SQLAlchemy

from base62num import (
    Base62OverflowError,
    InvalidCharacterError,
    decode,
    decode_or_raise,
    encode,
)

db = SQLAlchemy()

# Largest id a SQL BIGINT primary key can hold.
BIGINT_MAX = 2**63 - 1


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back out
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# --- Models ---
class ShortLink(db.Model):
    __tablename__ = "short_link"
    id = db.Column(db.BigInteger().with_variant(db.Integer, "sqlite"), primary_key=True)
    long_url = db.Column(db.Text, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    hits = db.Column(db.Integer, default=0)
    last_accessed = db.Column(db.DateTime(timezone=True), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def code(self) -> str:
        return encode(self.id)

    def is_expired(self) -> bool:
        expires_at = _as_utc(self.expires_at)
        return expires_at is not None and datetime.now(timezone.utc) > expires_at

    def to_dict(self) -> dict:
        created_at = _as_utc(self.created_at)
        last_accessed = _as_utc(self.last_accessed)
        expires_at = _as_utc(self.expires_at)
        return {
            "code": self.code,
            "long_url": self.long_url,
            "hits": self.hits,
            "created_at": created_at.isoformat() if created_at else None,
            "last_accessed": last_accessed.isoformat() if last_accessed else None,
            "expires_at": expires_at.isoformat() if expires_at else None,
            "expired": self.is_expired(),
        }


def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    if not parsed.netloc:
        return False
    return True


def create_app(config: dict | None = None) -> Flask:
    app = Flask(__name__)
    app.config.update(
        SQLALCHEMY_DATABASE_URI=os.getenv("DATABASE_URL", "sqlite:///short_links.db"),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        SHORT_CODE_MAX_ID=int(os.getenv("SHORT_CODE_MAX_ID", str(BIGINT_MAX))),
    )
    if config:
        app.config.update(config)

    db.init_app(app)

    # Ensure DB exists
    with app.app_context():
        db.create_all()

    def lookup(code: str) -> ShortLink | None:
        link_id = decode(code, max_value=app.config["SHORT_CODE_MAX_ID"])
        if link_id is None:
            app.logger.debug("Rejected short code %r", code)
            return None
        return db.session.get(ShortLink, link_id)

    # --- Routes ---
    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/shorten")
    def shorten():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = request.form
        long_url = str(data.get("long_url") or "").strip()
        expires_in = data.get("expires_in")
        expires_in_days = "" if expires_in is None else str(expires_in).strip()

        # Normalize long_url: if missing scheme, try adding https://
        if long_url and not urlparse(long_url).scheme:
            long_url = "https://" + long_url

        if not is_valid_url(long_url):
            return jsonify({"error": "long_url must be a valid http:// or https:// URL"}), 400

        expires_at = None
        if expires_in_days:
            try:
                days = int(expires_in_days)
                if days <= 0:
                    raise ValueError
                expires_at = datetime.now(timezone.utc) + timedelta(days=days)
            except (ValueError, OverflowError):
                return jsonify({"error": "expires_in must be a positive integer number of days"}), 400

        # Reuse an existing link for the same URL rather than minting a new id
        link = ShortLink.query.filter_by(long_url=long_url).order_by(ShortLink.id.desc()).first()
        if link is not None and not link.is_expired():
            if expires_at:
                link.expires_at = expires_at
                db.session.commit()
            status = 200
        else:
            link = ShortLink(long_url=long_url, expires_at=expires_at)
            db.session.add(link)
            db.session.commit()  # to populate link.id
            app.logger.info("Shortened %s as %s (id=%d)", long_url, link.code, link.id)
            status = 201

        return jsonify({
            "code": link.code,
            "short_url": request.host_url + link.code,
            "long_url": link.long_url,
            "expires_at": link.to_dict()["expires_at"],
        }), status

    # Static routes above take precedence, so ids whose code spells "health"
    # or "shorten" are only reachable through /api/expand.
    @app.get("/<string:code>")
    def redirect_code(code: str):
        link = lookup(code)
        if link is None or link.is_expired():
            abort(404)
        link.hits = (link.hits or 0) + 1
        link.last_accessed = datetime.now(timezone.utc)
        db.session.commit()
        return redirect(link.long_url, code=302)

    @app.get("/api/expand/<string:code>")
    def api_expand(code: str):
        link = lookup(code)
        if link is None:
            abort(404)
        return jsonify(link.to_dict())

    @app.get("/api/encode/<int:number>")
    def api_encode(number: int):
        try:
            code = encode(number, max_value=app.config["SHORT_CODE_MAX_ID"])
        except Base62OverflowError as e:
            return jsonify({"error": str(e), "reason": "overflow"}), 400
        return jsonify({"number": number, "code": code})

    @app.get("/api/decode/<string:code>")
    def api_decode(code: str):
        try:
            number = decode_or_raise(code, max_value=app.config["SHORT_CODE_MAX_ID"])
        except InvalidCharacterError as e:
            return jsonify({"error": str(e), "reason": "invalid_character"}), 400
        except Base62OverflowError as e:
            return jsonify({"error": str(e), "reason": "overflow"}), 400
        return jsonify({"code": code, "number": number})

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "not_found"}), 404

    return app

# For local dev: `python app.py`
if __name__ == "__main__":
    app = create_app()
    # Use Flask's built-in server for dev
    app.run(host="127.0.0.1", port=int(os.getenv("PORT", "5000")), debug=True)
