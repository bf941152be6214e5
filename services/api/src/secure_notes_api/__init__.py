"""带 TOTP 双因素认证的笔记服务。"""
