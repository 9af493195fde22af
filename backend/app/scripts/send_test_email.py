import sys
import os
from datetime import datetime

from dotenv import load_dotenv

# ================================================
# 路径设置：让 Python 能正确 import app.*
# ================================================
CURRENT_FILE = os.path.abspath(__file__)
BACKEND_DIR = os.path.abspath(os.path.join(CURRENT_FILE, "../../.."))
sys.path.append(BACKEND_DIR)

# ================================================
# 读取环境变量（必须在导入 settings 之前）
# ================================================
ENV_PATH = os.path.join(BACKEND_DIR, ".env")
print(">> Loading .env from:", ENV_PATH)
load_dotenv(ENV_PATH)

from app.services.email_client import get_mailer
from app.services.email_templates import application_approved_email
from app.services.errors import EmailDeliveryError


# =====================================================
# 主流程：发送一封测试邮件，检查 Brevo 配置是否可用
# 用法: python send_test_email.py [收件人邮箱]
# =====================================================
def main():
    mailer = get_mailer()
    if not mailer.is_configured():
        print("❌ Email service not configured. Please add BREVO_API_KEY and BREVO_FROM_EMAIL to .env")
        return 1

    to = sys.argv[1] if len(sys.argv) > 1 else mailer.from_email
    content = application_approved_email(
        applicant_name="Test User",
        program_title="Brevo Test Program",
        application_id="test",
        reviewer_notes=f"Test email sent at {datetime.now().isoformat(timespec='seconds')}",
    )

    print(f">> Sending test email to: {to}")
    try:
        result = mailer.send(to=to, subject=content.subject, html=content.html, text=content.text, to_name="Test User")
    except EmailDeliveryError as e:
        print(f"❌ Failed: {e}")
        return 1

    print(f"✅ Sent! messageId={result.get('message_id')}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
