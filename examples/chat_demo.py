"""终端里的最小问答演示。

需要在环境变量或 .env 中设置 DEEPSEEK_API_KEY。
输入 /new 开始新会话，/history 查看历史，/load <id> 载入，/del <id> 删除，
/expand 知识延展，/source <name> 切换数据源，/quit 退出。
"""

from telecom_qa import get_default_service

if __name__ == "__main__":
    service = get_default_service()
    data_source = "deepseek"
    while True:
        try:
            line = input("You: ").strip()
        except EOFError:
            break
        if line == "/quit":
            break
        if line == "/new":
            service.new_conversation()
            continue
        if line == "/history":
            for entry in service.history():
                print(f"{entry.id}  {entry.title}  ({entry.turn_count})")
            continue
        if line.startswith("/load "):
            for reply in service.load_conversation(line[6:].strip()):
                print(f"{reply.role}: {reply.content}")
            continue
        if line.startswith("/del "):
            print("deleted" if service.delete_conversation(line[5:].strip()) else "not found")
            continue
        if line.startswith("/source "):
            data_source = line[8:].strip()
            continue
        reply = service.expand_knowledge() if line == "/expand" else service.send_message(line, data_source)
        if reply is not None:
            print("Agent:", reply.content)
