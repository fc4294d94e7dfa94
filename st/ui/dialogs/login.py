"""Sign-in dialog: email/password login or registration against the API."""

from PySide6.QtCore import Qt, QUrl
from PySide6.QtGui import QDesktopServices
from PySide6.QtWidgets import (
    QDialog,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QVBoxLayout,
)
from st.common.errors import ApiError
from st.common.logger import log

# Modal dialog shown whenever nobody is signed in. On accept, `user` holds the signed-in user dict.
class LoginDialog(QDialog):

    def __init__(self, parent, auth):
        super().__init__(parent)
        self.setWindowTitle("Sign in to StudyTrack")
        self.setModal(True)
        self.auth = auth
        self.user = None
        self._register_mode = False

        outer = QVBoxLayout(self)
        self._title = QLabel("Sign in")
        self._title.setObjectName("heading")
        outer.addWidget(self._title)

        form = QFormLayout()
        self._email = QLineEdit()
        self._email.setPlaceholderText("you@example.com")
        self._password = QLineEdit()
        self._password.setEchoMode(QLineEdit.Password)
        form.addRow("Email", self._email)
        form.addRow("Password", self._password)
        outer.addLayout(form)

        self._error = QLabel("")
        self._error.setObjectName("message")
        self._error.setProperty("kind", "error")
        self._error.setWordWrap(True)
        self._error.setVisible(False)
        outer.addWidget(self._error)

        btn_row = QHBoxLayout()
        self._submit_btn = QPushButton("Sign in")
        self._submit_btn.setDefault(True)
        self._submit_btn.clicked.connect(self._on_submit)
        self._switch_btn = QPushButton("Create an account")
        self._switch_btn.clicked.connect(self._on_switch_mode)
        self._google_btn = QPushButton("Continue with Google")
        self._google_btn.clicked.connect(self._on_google)
        btn_row.addWidget(self._submit_btn)
        btn_row.addWidget(self._switch_btn)
        btn_row.addStretch()
        btn_row.addWidget(self._google_btn)
        outer.addLayout(btn_row)

        self._email.setFocus(Qt.OtherFocusReason)

    def _show_error(self, message):
        self._error.setText(message)
        self._error.setVisible(bool(message))

    def _on_switch_mode(self):
        self._register_mode = not self._register_mode
        self._title.setText("Create account" if self._register_mode else "Sign in")
        self._submit_btn.setText("Register" if self._register_mode else "Sign in")
        self._switch_btn.setText("I already have an account" if self._register_mode else "Create an account")
        self._show_error("")

    def _on_submit(self):
        self._show_error("")
        email = self._email.text().strip()
        password = self._password.text()
        try:
            if self._register_mode:
                user = self.auth.register(email, password)
            else:
                user = self.auth.login(email, password)
        except ApiError as err:
            self._show_error(str(err) or ("Registration failed" if self._register_mode else "Login failed"))
            return
        if user is None:
            self._show_error("Signed in, but the server did not return a user.")
            return
        self.user = user
        self.accept()

    # Google sign-in finishes in the browser; the user comes back and signs in here once the cookie is set there.
    def _on_google(self):
        try:
            url = self.auth.google_login_url()
        except ApiError as err:
            self._show_error(str(err) or "Unable to start Google login")
            return
        if url:
            log.info("Opening Google sign-in in the browser")
            QDesktopServices.openUrl(QUrl(url))
