#!/usr/bin/env python3
"""
Registry Hoster - 主入口点

把私有镜像仓库的当前地址写入节点的 /etc/hosts。

关闭顺序：SIGTERM/SIGINT 只停止事件监听器和同步引擎，
等 run() 在当前同步周期结束后返回，再执行 cleanup()（按配置移除
管理段、关闭集群客户端），最后以退出码 0 退出。
"""

import signal
import sys
from pathlib import Path

# 将当前目录添加到路径以导入 registry_hoster 模块
sys.path.insert(0, str(Path(__file__).parent))

from registry_hoster import Config, RegistryHoster


def main() -> None:
    """
    主入口点

    初始化失败或运行中出现致命错误时以退出码 1 退出，
    此时同样会先执行 cleanup()。
    """

    # 从环境变量加载配置
    config = Config.from_env()

    # 初始化 Registry Hoster
    try:
        hoster = RegistryHoster(config)
    except Exception as e:
        print(f"初始化 Registry Hoster 失败: {e}", file=sys.stderr)
        sys.exit(1)

    # 定义信号处理器以实现优雅关闭
    def signal_handler(signum: int, frame) -> None:
        """
        处理关闭信号

        这里不做清理也不退出，避免与正在进行的同步周期交错；
        重复收到信号是安全的。
        """
        signal_name = signal.Signals(signum).name
        hoster.logger.info(f"收到信号 {signal_name}，正在关闭...")
        hoster.stop()

    # 注册信号处理器
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    # 运行应用
    try:
        hoster.run()
    except KeyboardInterrupt:
        hoster.logger.info("被用户中断")
    except Exception as e:
        hoster.logger.error(f"致命错误: {e}", exc_info=True)
        hoster.cleanup()
        sys.exit(1)

    hoster.cleanup()
    sys.exit(0)


if __name__ == '__main__':
    main()
