"""
Apple App Store Server API 集成

- config: 不可变的 Apple 配置
- jose: base64url 与 DER -> JOSE 签名格式转换
- signer: ES256 JWT 签发
- client: 订阅状态接口（production -> sandbox 回退）
- jws: 内层签名数据解码
- models: 宽松解析的响应模型
- selector: 选出目标商品最晚过期的交易
- reconciler: 订阅状态计算
"""
