import os
from salehub import create_app, db
from salehub.models import (
    User, Role, Address,
    Shop, Item, CartItem, Voucher,
    Order, OrderShop, OrderItem, OrderHistory, CancelRequest,
    ReturnOrder, ReturnOrderItem,
    StockLog, Transaction,
)

# 从环境变量获取配置模式
# 支持 FLASK_ENV 或 FLASK_CONFIG
config_name = os.getenv('FLASK_ENV') or os.getenv('FLASK_CONFIG') or 'default'
if config_name in ('development', 'dev'):
    config_name = 'development'

app = create_app(config_name)

@app.shell_context_processor
def make_shell_context():
    """
    配置 Flask Shell 上下文。
    允许在命令行中使用 'flask shell' 时自动导入 db 和模型。
    """
    return dict(
        db=db,
        app=app,
        User=User,
        Role=Role,
        Address=Address,
        Shop=Shop,
        Item=Item,
        CartItem=CartItem,
        Voucher=Voucher,
        Order=Order,
        OrderShop=OrderShop,
        OrderItem=OrderItem,
        OrderHistory=OrderHistory,
        CancelRequest=CancelRequest,
        ReturnOrder=ReturnOrder,
        ReturnOrderItem=ReturnOrderItem,
        StockLog=StockLog,
        Transaction=Transaction,
    )

if __name__ == '__main__':
    print("-------------------------------------------------------")
    print("   SALEHUB ORDER ENGINE STARTING                       ")
    print("   Target: Localhost:5000                              ")
    print("-------------------------------------------------------")
    app.run(host='0.0.0.0', port=5000)
