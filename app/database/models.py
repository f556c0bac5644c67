import sqlalchemy
from sqlalchemy.orm import DeclarativeBase


class AdminAuthBase(DeclarativeBase):
    pass


class Admins(AdminAuthBase):
    __tablename__ = "admins"
    id = sqlalchemy.Column(sqlalchemy.Integer, primary_key=True)
    username = sqlalchemy.Column(sqlalchemy.String, unique=True, nullable=False)
    password_hash = sqlalchemy.Column(sqlalchemy.String, nullable=False)
    created_at = sqlalchemy.Column(sqlalchemy.DateTime, server_default=sqlalchemy.func.now())
    last_login = sqlalchemy.Column(sqlalchemy.DateTime, nullable=True)


class AdminTotpSecrets(AdminAuthBase):
    __tablename__ = "admin_totp_secrets"
    id = sqlalchemy.Column(sqlalchemy.Integer, primary_key=True)
    admin_id = sqlalchemy.Column(sqlalchemy.Integer, sqlalchemy.ForeignKey("admins.id", ondelete="CASCADE"), unique=True, nullable=False)
    secret = sqlalchemy.Column(sqlalchemy.String(64), nullable=False)
    enabled = sqlalchemy.Column(sqlalchemy.Boolean, default=False, nullable=False)
    created_at = sqlalchemy.Column(sqlalchemy.DateTime, server_default=sqlalchemy.func.now())


class AdminBackupCodes(AdminAuthBase):
    __tablename__ = "admin_backup_codes"
    __table_args__ = (
        sqlalchemy.Index("idx_admin_backup_codes_admin_used", "admin_id", "used"),
    )
    id = sqlalchemy.Column(sqlalchemy.Integer, primary_key=True)
    admin_id = sqlalchemy.Column(sqlalchemy.Integer, sqlalchemy.ForeignKey("admins.id", ondelete="CASCADE"), nullable=False, index=True)
    code_hash = sqlalchemy.Column(sqlalchemy.String(255), nullable=False)
    used = sqlalchemy.Column(sqlalchemy.Boolean, default=False, nullable=False)  # false -> true only
    used_at = sqlalchemy.Column(sqlalchemy.DateTime, nullable=True)
    created_at = sqlalchemy.Column(sqlalchemy.DateTime, server_default=sqlalchemy.func.now())


class AdminTotpAttempts(AdminAuthBase):
    __tablename__ = "admin_totp_attempts"
    __table_args__ = (
        sqlalchemy.UniqueConstraint("admin_id", "ip_address", name="uq_admin_totp_attempts_admin_ip"),
    )
    id = sqlalchemy.Column(sqlalchemy.Integer, primary_key=True)
    admin_id = sqlalchemy.Column(sqlalchemy.Integer, sqlalchemy.ForeignKey("admins.id", ondelete="CASCADE"), nullable=False)
    ip_address = sqlalchemy.Column(sqlalchemy.String(45), nullable=False)
    attempts = sqlalchemy.Column(sqlalchemy.Integer, default=0, nullable=False)
    last_attempt = sqlalchemy.Column(sqlalchemy.DateTime, nullable=True)
    locked_until = sqlalchemy.Column(sqlalchemy.DateTime, nullable=True, index=True)


"""
The attempts table is only written by twofactor.throttle.AttemptLimiter,
verification itself never reads it.
When changing columns also add an alembic revision (see alembic/versions).
"""
