from decimal import Decimal
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from salehub.extensions import db
from .base import BaseModel

# 多对多关系表：用户 <-> 角色 (一个用户可同时是买家和卖家)
users_roles = db.Table('auth_users_roles',
    db.Column('user_id', db.Integer, db.ForeignKey('auth_users.id'), primary_key=True),
    db.Column('role_id', db.Integer, db.ForeignKey('auth_roles.id'), primary_key=True)
)

class Role(BaseModel):
    """角色"""
    __tablename__ = 'auth_roles'

    CUSTOMER = 'Customer'
    SELLER = 'Seller'
    ADMIN = 'Admin'

    name = db.Column(db.String(64), unique=True)

    def __repr__(self):
        return f'<Role {self.name}>'

class User(UserMixin, BaseModel):
    """用户"""
    __tablename__ = 'auth_users'
    email = db.Column(db.String(128), unique=True, index=True)
    username = db.Column(db.String(64), index=True)
    password_hash = db.Column(db.String(256))
    is_active_user = db.Column(db.Boolean, default=True)  # 封号开关

    # 钱包余额 (退款入账)
    balance = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal('0'))

    roles = db.relationship('Role', secondary=users_roles, backref='users')
    addresses = db.relationship('Address', backref='user', lazy='dynamic')

    @property
    def password(self):
        raise AttributeError('密码不可读')

    @password.setter
    def password(self, password):
        self.password_hash = generate_password_hash(password)

    def verify_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def role_names(self):
        return frozenset(r.name for r in self.roles)

    def has_role(self, name):
        return name in self.role_names

    # Flask-Login 必须属性覆盖
    @property
    def is_active(self):
        return bool(self.is_active_user)

    def __repr__(self):
        return f'<User {self.email}>'

class Address(BaseModel):
    """收货/发货地址"""
    __tablename__ = 'auth_addresses'
    user_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'), index=True)
    name = db.Column(db.String(128))
    latitude = db.Column(db.Float, default=0.0)
    longitude = db.Column(db.Float, default=0.0)
    is_default = db.Column(db.Boolean, default=False)
